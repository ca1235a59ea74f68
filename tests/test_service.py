"""
Service Tests
Generation service, surface read view, map rendering and the command line.
"""

import json

import pytest

from planetgen.__main__ import main
from planetgen.config import GeneratorSettings, PlanetConfig, ResourceType, Season, SurfaceType, WaterCoverage
from planetgen.io.serializer import to_json
from planetgen.models.tile import Tile
from planetgen.rendering import SurfaceView
from planetgen.service import PlanetGenerationService
from planetgen.utils.visualization import render_surface_map, surface_color


@pytest.fixture
def service(template):
    return PlanetGenerationService(template)


class TestGenerationService:
    """Tests for repeatable, isolated runs"""

    def test_same_seed_same_surface(self, service, planet, settings):
        """Test two runs with one seed serialize identically"""
        first = service.generate(planet, settings)
        second = service.generate(planet, settings)
        assert to_json(first.tiles, first.context.planet) == to_json(second.tiles, second.context.planet)
        assert first.payload == second.payload

    def test_template_and_planet_untouched(self, template, planet, settings):
        """Test runs neither mutate the template nor the caller's planet"""
        service = PlanetGenerationService(template)
        before = planet.model_dump()
        result = service.generate(planet, settings)

        assert planet.model_dump() == before
        assert all(not t.neighbors for t in service.template)
        assert all(t.surface_type == SurfaceType.UNKNOWN for t in service.fresh_tiles())
        assert result.tiles is not service.template
        assert result.payload["p"]["tc"] == len(template)

    def test_profile_chosen_from_planet(self, service, settings):
        """Test an airless planet runs the airless profile"""
        result = service.generate(PlanetConfig(has_atmosphere=False), settings)
        assert not any(t.is_river for t in result.tiles)
        assert not any(t.is_liquid_water for t in result.tiles)

    def test_generate_many_keeps_order(self, service):
        """Test batch results line up with the requested runs"""
        runs = [
            (PlanetConfig(water_coverage=WaterCoverage.OCEANS), GeneratorSettings(seed=1)),
            (PlanetConfig(has_atmosphere=False), GeneratorSettings(seed=2)),
        ]
        results = service.generate_many(runs)
        assert [r.context.settings.seed for r in results] == [1, 2]
        assert results[1].context.planet.has_atmosphere is False
        assert service.generate_many([]) == []


class TestSurfaceView:
    """Tests for renderer read access"""

    def test_reads_and_manual_edit(self):
        t = Tile(0, 5.0, 5.0)
        t.surface_type = SurfaceType.GRASSLAND
        t.temperature = 18
        t.river_to = -1
        t.river_from = [3]
        view = SurfaceView([t], PlanetConfig())

        assert view.temperature(0, Season.WARM) == 18.0
        assert view.river_downstream(0) is None
        assert view.river_upstream(0) == [3]
        assert not view.has_resource(0, ResourceType.Fe_MAG)

        view.set_surface_type(0, SurfaceType.DESERT)
        assert view.surface_type(0) == SurfaceType.DESERT
        assert view.temperature(0) == 18.0


class TestMapRendering:
    """Tests for the matplotlib map output"""

    @pytest.mark.parametrize("layer", ["surface", "elevation", "temperature", "precipitation"])
    def test_layers(self, tmp_path, make_context, layer):
        context = make_context()
        path = render_surface_map(SurfaceView(context.tiles, context.planet), tmp_path / f"{layer}.png", layer=layer)
        assert path.exists()
        assert path.stat().st_size > 0

    def test_unknown_layer(self, tmp_path, make_context):
        context = make_context()
        with pytest.raises(ValueError):
            render_surface_map(SurfaceView(context.tiles), tmp_path / "x.png", layer="gravity")

    def test_colors_in_range(self):
        for surface in SurfaceType:
            assert all(0.0 <= c <= 1.0 for c in surface_color(surface))


class TestCommandLine:
    """Tests for python -m planetgen"""

    def test_writes_outputs(self, tmp_path, capsys):
        surface = tmp_path / "surface.json"
        hex_data = tmp_path / "hex.json"
        image = tmp_path / "map.png"
        code = main(["--seed", "3", "--subdivisions", "1", "--output", str(surface),
                     "--hex", str(hex_data), "--map", str(image)])

        assert code == 0
        payload = json.loads(surface.read_text(encoding="utf-8"))
        assert payload["p"]["tc"] == 42
        assert len(json.loads(hex_data.read_text(encoding="utf-8"))) == 42
        assert image.exists()
        assert "SURFACE GENERATION COMPLETE" in capsys.readouterr().out

    def test_unknown_profile_fails(self, tmp_path):
        assert main(["--subdivisions", "1", "--profile", "no_such_profile"]) == 1

    def test_bad_tile_file_fails(self, tmp_path):
        bad = tmp_path / "tiles.txt"
        bad.write_text("row,id,lat,lon\n0,5,1,1\n", encoding="utf-8")
        assert main(["--tiles", str(bad)]) == 1

    def test_mesh_options_are_exclusive(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--subdivisions", "1", "--tiles", str(tmp_path / "tiles.txt")])
