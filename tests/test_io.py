"""
I/O Tests
Fallback resolution, surface serialization, hex data and tile templates.
"""

import gzip
import json
import math

import pytest

from planetgen.config import (
    GENERATOR_VERSION,
    SURFACE_SCHEMA_VERSION,
    PlanetConfig,
    ResourceLayer,
    ResourceType,
    Season,
    SurfaceType,
)
from planetgen.errors import EncodingError, TileDataError
from planetgen.generation.pipeline import create_pipeline
from planetgen.generation.profiles import StageProfile
from planetgen.io.fallback import (
    CHAINS,
    Quantity,
    Tier,
    estimate_temperature,
    resolve,
    resolve_with_tier,
    round_value,
)
from planetgen.io.hex_encoder import encode_hex_data, hex_row
from planetgen.io.serializer import encode_hex, gzip_payload, read_payload, to_json, to_payload
from planetgen.io.tile_loader import TILE_SET_FILES, load_tile_csv, select_tile_set
from planetgen.models.tile import ResourcePresence, Tile


def _tile(tile_id=0, lat=10.0, lon=20.0):
    return Tile(tile_id, lat, lon)


# Every chain field a test can fill, per tier, for the WARM temperature chain
_WARM_TEMPERATURE_FIELDS = CHAINS[Quantity.TEMPERATURE][Season.WARM]


class TestFallbackResolution:
    """Most specific populated tier wins"""

    def test_local_tier_wins_over_everything(self):
        """Test a populated local value hides every less specific tier"""
        t = _tile()
        t.biome_temp_warm = 31.0
        t.temp_warm = 25.0
        t.biome_temp_interseason = 15.0
        t.temperature = 12
        assert resolve_with_tier(t, Quantity.TEMPERATURE, Season.WARM) == (31.0, Tier.LOCAL)

    @pytest.mark.parametrize("tier", [Tier.GLOBAL, Tier.INTERSEASON])
    def test_first_populated_tier_is_used(self, tier):
        """Test resolution stops at the first populated tier"""
        t = _tile()
        t.temperature = 12
        for later in (Tier.GLOBAL, Tier.INTERSEASON):
            if later >= tier:
                setattr(t, _WARM_TEMPERATURE_FIELDS[later], 40.0 + later)
        value, used = resolve_with_tier(t, Quantity.TEMPERATURE, Season.WARM)
        assert used == tier
        assert value == 40.0 + tier

    def test_chain_order_is_monotonic(self):
        """Test every chain lists tiers most specific first"""
        for seasons in CHAINS.values():
            for chain in seasons.values():
                tiers = list(chain)
                assert tiers == sorted(tiers)
                assert Tier.ANNUAL in chain

    def test_annual_value_when_no_season_ran(self):
        """Test absent seasonal fields fall back to the annual value"""
        t = _tile()
        t.precip_kg_m2_day = 3.5
        assert resolve_with_tier(t, Quantity.PRECIP_FLUX, Season.COLD) == (3.5, Tier.ANNUAL)

    def test_estimate_then_default(self):
        """Test the analytic estimate needs a planet, else the value is 0"""
        t = _tile()
        t.wind_avg = None
        value, tier = resolve_with_tier(t, Quantity.WIND, Season.WARM, PlanetConfig())
        assert tier == Tier.ESTIMATE
        assert value > 0.0
        assert resolve_with_tier(t, Quantity.WIND, Season.WARM) == (0.0, Tier.DEFAULT)

    def test_airless_estimates_are_dry(self):
        """Test airless planets estimate no precipitation or wind"""
        airless = PlanetConfig(has_atmosphere=False)
        t = _tile()
        assert resolve(t, Quantity.PRECIP, Season.INTERSEASON, airless) == 0.0
        assert resolve(t, Quantity.WIND, Season.INTERSEASON, airless) == 0.0

    def test_zero_sunny_days_counts_as_absent(self):
        """Test unsampled sunny days fall through to the annual value"""
        t = _tile()
        t.sunny_warm = 0
        t.sunny_days = 210
        assert resolve(t, Quantity.SUNNY_DAYS, Season.WARM) == 210.0

    def test_round_value(self):
        """Test absent and NaN values round as 0"""
        assert round_value(None, 2) == 0.0
        assert round_value(float("nan"), 2) == 0.0
        assert round_value(1.23456, 2) == 1.23

    @pytest.mark.parametrize("value", [math.inf, -math.inf])
    def test_round_value_rejects_infinity(self, value):
        with pytest.raises(EncodingError):
            round_value(value, 2)

    def test_unset_annual_temperature_is_estimated(self):
        """Test a tile no climate model touched skips the annual tier"""
        planet = PlanetConfig(mean_temperature_c=40.0)
        t = _tile(lat=0.0)
        assert t.temperature == 0
        value, tier = resolve_with_tier(t, Quantity.TEMPERATURE, Season.WARM, planet)
        assert tier == Tier.ESTIMATE
        assert value == pytest.approx(estimate_temperature(0.0, planet))

        t.temperature = 0
        assert resolve_with_tier(t, Quantity.TEMPERATURE, Season.WARM, planet) == (0.0, Tier.ANNUAL)

    def test_partial_run_estimates_temperature(self, template, settings):
        """Test a run without climate stages resolves temperature by estimate"""
        planet = PlanetConfig(mean_temperature_c=40.0)
        context = create_pipeline(StageProfile.tectonics_only()).run(template, planet, settings)

        for t in context.tiles:
            value, tier = resolve_with_tier(t, Quantity.TEMPERATURE, planet=planet)
            assert tier == Tier.ESTIMATE
            assert value == pytest.approx(estimate_temperature(t.lat, planet))
        first = context.tiles[0]
        low = resolve(first, Quantity.TEMP_MIN, planet=planet)
        high = resolve(first, Quantity.TEMP_MAX, planet=planet)
        assert low < estimate_temperature(first.lat, planet) < high
        assert context.stats.temperature.mean is None


class TestSerializer:
    """Compact surface payload"""

    def _finished_tile(self):
        t = _tile(0)
        t.neighbors = [1, 2, 3, 4, 5]
        t.surface_type = SurfaceType.GRASSLAND
        t.elevation = 12
        t.temperature = 14
        t.temp_min_warm, t.temp_min_interseason, t.temp_min_cold = 12.04, 5.0, -3.26
        t.biome_preferred_season = Season.WARM
        t.river_type = 2
        t.river_to = 7
        t.river_from = [3, 4]
        t.river_discharge_kg_s = 1234.567
        t.resources = [ResourcePresence(type=ResourceType.Fe_MAG, layer=ResourceLayer.DEEP,
                                        quality=70, saturation=40, amount=3, tonnes=5.5e9)]
        t.tidal_range_m = 1.234
        t.tidal_period_hours = 12.42
        t.solar_kwh_day_warm, t.solar_kwh_day_inter, t.solar_kwh_day_cold = 6.12345, 4.5, 2.0
        return t

    def test_hex_layout(self):
        """Test positional layout of one encoded tile"""
        row = encode_hex(self._finished_tile(), PlanetConfig())
        assert row[0] == 0
        assert row[1] == int(SurfaceType.GRASSLAND)
        assert row[2] == int(Season.WARM)
        assert row[5] == 12
        assert row[6] == "12.0|5.0|-3.3"
        assert row[13] == [2, 7, 1234.57, 3, 4]
        assert row[14] == [[int(ResourceType.Fe_MAG), int(ResourceLayer.DEEP), 70, 40, 5.5e9]]
        assert row[15] == "1.23|12.42"
        assert row[16] == "6.123|4.5|2.0"
        assert row[17] == 0
        assert row[18] == [1, 2, 3, 4, 5]
        assert len(row) == 19

    def test_unset_preferred_season_is_null(self):
        """Test a tile no biome pass touched has no preferred season"""
        row = encode_hex(_tile(), PlanetConfig())
        assert row[2] is None

    def test_absent_fields_never_leak_nan(self):
        """Test a bare tile still encodes to strict JSON"""
        text = to_json([_tile(0), _tile(1, -10.0, 50.0)], PlanetConfig())
        assert "NaN" not in text
        payload = json.loads(text)
        assert payload["sv"] == SURFACE_SCHEMA_VERSION
        assert payload["gv"] == GENERATOR_VERSION
        assert payload["p"]["tc"] == 2
        assert len(payload["h"]) == 2

    def test_payload_header(self):
        """Test the planet block carries subsurface ice and tile count"""
        planet = PlanetConfig(subsurface_ice_thickness_m=120.0)
        payload = to_payload([_tile()], planet)
        assert payload["p"] == {"si": 120.0, "tc": 1}

    def test_gzip_round_trip(self):
        """Test stored payloads decode gzipped or plain"""
        tiles = [self._finished_tile()]
        planet = PlanetConfig()
        stored = gzip_payload(tiles, planet)
        assert stored[:2] == b"\x1f\x8b"
        assert read_payload(stored) == read_payload(to_json(tiles, planet).encode("utf-8"))

    @pytest.mark.parametrize("field", ["tidal_range_m", "temp_min_warm", "solar_kwh_day_warm"])
    def test_unencodable_value_raises(self, field):
        """Test an infinite value fails the whole encoding"""
        t = _tile()
        setattr(t, field, math.inf)
        with pytest.raises(EncodingError):
            to_json([_tile(1), t], PlanetConfig())

    def test_read_rejects_garbage(self):
        """Test undecodable or incomplete payloads raise EncodingError"""
        with pytest.raises(EncodingError):
            read_payload(b"not json")
        with pytest.raises(EncodingError):
            read_payload(gzip.compress(b'{"sv": 2}'))


class TestHexData:
    """Viewer hex data"""

    def test_row(self):
        """Test the viewer row layout"""
        t = _tile(3, 1.5, -2.5)
        t.neighbors = [0, 1, 2]
        t.surface_type = SurfaceType.OCEAN
        t.wind_x, t.wind_y = 3.0, 4.0
        assert hex_row(t) == [3, 3, [0, 1, 2], 1.5, -2.5, int(SurfaceType.OCEAN), 0, 0, 5.0]

    def test_non_finite_rejected(self):
        """Test NaN wind fails the hex data encoding"""
        t = _tile()
        t.wind_x = float("nan")
        with pytest.raises(EncodingError):
            encode_hex_data([t])


class TestTileLoader:
    """Tile template CSV files"""

    def test_load(self, tmp_path):
        """Test a well formed template with quotes and a blank line"""
        path = tmp_path / "tiles.txt"
        path.write_text('row,id,lat,lon\n0,"0","10.5","-20.25"\n\n1,1,-3,4\n', encoding="utf-8")
        tiles = load_tile_csv(path)
        assert [(t.id, t.lat, t.lon) for t in tiles] == [(0, 10.5, -20.25), (1, -3.0, 4.0)]

    @pytest.mark.parametrize("body", [
        "0,0,abc,1\n",
        "0,0,1\n",
        "0,1,1,1\n",
        "0,0,nan,1\n",
    ])
    def test_malformed_rows(self, tmp_path, body):
        """Test bad values, short rows, ids out of sequence and NaN coordinates"""
        path = tmp_path / "bad.txt"
        path.write_text("row,id,lat,lon\n" + body, encoding="utf-8")
        with pytest.raises(TileDataError) as info:
            load_tile_csv(path)
        assert ":2" in str(info.value)

    def test_missing_file(self, tmp_path):
        """Test an unreadable file is a TileDataError"""
        with pytest.raises(TileDataError):
            load_tile_csv(tmp_path / "missing.txt")

    def test_select_tile_set(self, tmp_path):
        """Test radius brackets pick the nearest shipped template"""
        assert select_tile_set(300.0, tmp_path).name == TILE_SET_FILES[0]
        assert select_tile_set(1250.0, tmp_path).name == TILE_SET_FILES[2]
        assert select_tile_set(6371.0, tmp_path).name == TILE_SET_FILES[3]
        assert select_tile_set(float("nan"), tmp_path).name == TILE_SET_FILES[3]
        assert select_tile_set(0.0, tmp_path).parent == tmp_path
