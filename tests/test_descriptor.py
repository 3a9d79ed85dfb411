"""
Tests for .dzi descriptor parsing.
"""

from pathlib import Path

import pytest

from dzi_ingest.models.records import DziDescriptor
from dzi_ingest.tile_engines.descriptor import (
    DZI_NAMESPACE,
    descriptor_path,
    read_descriptor,
    render_descriptor,
    tiles_dir,
    write_descriptor,
)

SHARP_OUTPUT = """<?xml version="1.0" encoding="UTF-8"?>
<Image xmlns="http://schemas.microsoft.com/deepzoom/2008"
  Format="jpeg"
  Overlap="2"
  TileSize="256"
  >
  <Size
    Height="2880"
    Width="2900"
  />
</Image>
"""


class TestDescriptor:

    def test_sibling_paths(self):
        base = Path("/data/tiles/uploaded/slide.v2")
        assert descriptor_path(base) == Path("/data/tiles/uploaded/slide.v2.dzi")
        assert tiles_dir(base) == Path("/data/tiles/uploaded/slide.v2_files")

    def test_render_uses_deepzoom_namespace(self):
        xml = render_descriptor(DziDescriptor(width=10, height=20, tile_size=256, overlap=2, format="jpeg"))
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert f'xmlns="{DZI_NAMESPACE}"' in xml
        assert 'TileSize="256"' in xml
        assert 'Width="10"' in xml

    def test_write_then_read(self, tmp_path):
        descriptor = DziDescriptor(width=2900, height=2880, tile_size=256, overlap=2, format="jpeg")
        write_descriptor(tmp_path / "a.dzi", descriptor)
        assert read_descriptor(tmp_path / "a.dzi") == descriptor

    def test_reads_externally_generated_descriptor(self, tmp_path):
        path = tmp_path / "sharp.dzi"
        path.write_text(SHARP_OUTPUT)

        descriptor = read_descriptor(path)

        assert (descriptor.width, descriptor.height) == (2900, 2880)
        assert descriptor.level_count == 13

    def test_reads_descriptor_without_namespace(self, tmp_path):
        path = tmp_path / "plain.dzi"
        path.write_text('<Image TileSize="254" Overlap="1" Format="png"><Size Width="3" Height="4"/></Image>')

        assert read_descriptor(path) == DziDescriptor(width=3, height=4, tile_size=254, overlap=1, format="png")

    @pytest.mark.parametrize("content", [
        "not xml at all",
        "<Collection/>",
        '<Image TileSize="256" Overlap="2" Format="jpeg"/>',
        '<Image TileSize="big" Overlap="2" Format="jpeg"><Size Width="1" Height="1"/></Image>',
        '<Image Overlap="2" Format="jpeg"><Size Width="1" Height="1"/></Image>',
    ])
    def test_rejects_malformed(self, tmp_path, content):
        path = tmp_path / "bad.dzi"
        path.write_text(content)
        with pytest.raises(ValueError):
            read_descriptor(path)
