# tile_engines/descriptor.py
"""Deep Zoom (.dzi) descriptor read/write."""

import xml.etree.ElementTree as ET
from pathlib import Path

from dzi_ingest.models.records import DziDescriptor

DZI_NAMESPACE = "http://schemas.microsoft.com/deepzoom/2008"


def descriptor_path(output_base: Path) -> Path:
    return output_base.with_name(f"{output_base.name}.dzi")


def tiles_dir(output_base: Path) -> Path:
    return output_base.with_name(f"{output_base.name}_files")


def render_descriptor(descriptor: DziDescriptor) -> str:
    ET.register_namespace("", DZI_NAMESPACE)
    image = ET.Element(
        f"{{{DZI_NAMESPACE}}}Image",
        {
            "TileSize": str(descriptor.tile_size),
            "Overlap": str(descriptor.overlap),
            "Format": descriptor.format,
        },
    )
    ET.SubElement(
        image,
        f"{{{DZI_NAMESPACE}}}Size",
        {"Width": str(descriptor.width), "Height": str(descriptor.height)},
    )
    body = ET.tostring(image, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def write_descriptor(path: Path, descriptor: DziDescriptor) -> None:
    path.write_text(render_descriptor(descriptor), encoding="utf-8")


def read_descriptor(path: Path) -> DziDescriptor:
    """
    Parse a .dzi document.

    Raises:
        ValueError: If the document is not a Deep Zoom descriptor
    """
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise ValueError(f"Malformed descriptor {path}: {e}") from e

    if not root.tag.endswith("Image"):
        raise ValueError(f"Not a Deep Zoom descriptor: root <{root.tag}>")

    size = root.find(f"{{{DZI_NAMESPACE}}}Size")
    if size is None:
        size = root.find("Size")
    if size is None:
        raise ValueError(f"Descriptor {path} has no <Size> element")

    try:
        return DziDescriptor(
            width=int(size.attrib["Width"]),
            height=int(size.attrib["Height"]),
            tile_size=int(root.attrib["TileSize"]),
            overlap=int(root.attrib["Overlap"]),
            format=root.attrib["Format"],
        )
    except (KeyError, ValueError) as e:
        raise ValueError(f"Descriptor {path} is missing or has invalid attribute: {e}") from e
