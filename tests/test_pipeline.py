"""
Pipeline Tests
Stage ordering, failure reporting, preconditions and profiles.

Run with: python -m pytest tests/test_pipeline.py -v
"""

import pytest

from planetgen.config import GeneratorSettings, PlanetConfig, STAGE_ORDER, StageId, WaterCoverage
from planetgen.errors import PreconditionError, StageFailedError, StageValidationError, TileDataError
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.pipeline import GenerationPipeline, StageListener, create_pipeline
from planetgen.generation.profiles import StageProfile, WorldType, classify_world
from planetgen.generation.stages import default_stages
from planetgen.generation.validation import validate_stage
from planetgen.models.tile import Tile


class RecordingStage(GenerationStage):
    """Appends its id to a shared log when applied"""

    def __init__(self, stage_id: StageId, log, requires=None, fail_with=None):
        super().__init__()
        self._stage_id = stage_id
        self.log = log
        self.requires = requires or []
        self.fail_with = fail_with

    @property
    def config(self) -> StageConfig:
        return StageConfig(self._stage_id, f"Recording {self._stage_id.name}", "test", self.requires)

    def apply(self, context) -> None:
        self.log.append(self._stage_id)
        if self.fail_with is not None:
            raise self.fail_with


class CollectingListener(StageListener):
    def __init__(self):
        self.started = []
        self.ended = []
        self.skipped = []

    def on_stage_start(self, stage, progress):
        self.started.append((stage.stage_id, progress))

    def on_stage_end(self, stage, elapsed_ms):
        self.ended.append(stage.stage_id)

    def on_stage_skipped(self, stage):
        self.skipped.append(stage.stage_id)


def _pipeline(stages, profile=None, listener=None):
    return GenerationPipeline(stages, profile=profile, listener=listener, validate=False)


class TestStageOrder:
    """Tests for run order and registration"""

    def test_default_stages_follow_canonical_order(self):
        """Test the default stage list matches STAGE_ORDER"""
        assert [s.stage_id for s in default_stages()] == STAGE_ORDER

    def test_stages_run_in_registration_order(self, template, planet, settings):
        """Test stages apply sequentially in list order"""
        log = []
        stages = [RecordingStage(sid, log) for sid in (StageId.NEIGHBORS, StageId.PLATES, StageId.CLIMATE)]
        _pipeline(stages).run(template, planet, settings)
        assert log == [StageId.NEIGHBORS, StageId.PLATES, StageId.CLIMATE]

    def test_duplicate_stage_rejected(self):
        """Test a stage id can only be registered once"""
        pipeline = _pipeline([RecordingStage(StageId.CLIMATE, [])])
        with pytest.raises(ValueError):
            pipeline.register_stage(RecordingStage(StageId.CLIMATE, []))

    def test_default_order_has_no_audit_problems(self):
        """Test every declared requirement runs earlier in the full profile"""
        assert create_pipeline().audit_order() == []

    def test_audit_reports_late_requirement(self):
        """Test the audit flags a stage scheduled before what it needs"""
        stages = [
            RecordingStage(StageId.STRESS, [], requires=[StageId.PLATES]),
            RecordingStage(StageId.PLATES, []),
        ]
        problems = _pipeline(stages).audit_order()
        assert len(problems) == 1
        assert "STRESS" in problems[0] and "PLATES" in problems[0]

    def test_completed_stages_recorded(self, template, planet, settings):
        """Test the context lists completed stages and timings"""
        stages = [RecordingStage(StageId.NEIGHBORS, []), RecordingStage(StageId.CLIMATE, [])]
        context = _pipeline(stages).run(template, planet, settings)
        assert context.completed_stages == [StageId.NEIGHBORS, StageId.CLIMATE]
        assert set(context.stage_timings) == {StageId.NEIGHBORS, StageId.CLIMATE}
        assert context.stats.tile_count == len(template)

    def test_timings_reset_between_runs(self, template, planet, settings):
        """Test a reused pipeline reports only the latest run's timings"""
        stages = [RecordingStage(StageId.NEIGHBORS, []), RecordingStage(StageId.CLIMATE, [])]
        pipeline = _pipeline(stages)
        pipeline.run(template, planet, settings)
        pipeline.profile = StageProfile.of("neighbors", [StageId.NEIGHBORS])
        pipeline.run([t.copy_template() for t in template], planet, settings)
        assert set(pipeline.stage_timings) == {StageId.NEIGHBORS}


class TestFailureHandling:
    """Tests for fail-fast behavior"""

    def test_first_failure_aborts_run(self, template, planet, settings):
        """Test no stage runs after a failing one"""
        log = []
        stages = [
            RecordingStage(StageId.NEIGHBORS, log),
            RecordingStage(StageId.PLATES, log, fail_with=RuntimeError("boom")),
            RecordingStage(StageId.CLIMATE, log),
        ]
        pipeline = _pipeline(stages)
        with pytest.raises(StageFailedError) as info:
            pipeline.run(template, planet, settings)

        assert log == [StageId.NEIGHBORS, StageId.PLATES]
        assert info.value.stage_id == StageId.PLATES
        assert isinstance(info.value.cause, RuntimeError)
        assert info.value.__cause__ is info.value.cause
        assert not info.value.is_precondition_failure
        assert pipeline.status == "failed"

    def test_missing_plates_is_precondition_failure(self, template, planet, settings):
        """Test stress without plates reports an ordering problem"""
        profile = StageProfile.of("stress_only", [StageId.NEIGHBORS, StageId.STRESS])
        with pytest.raises(StageFailedError) as info:
            create_pipeline(profile).run(template, planet, settings)

        assert info.value.stage_id == StageId.STRESS
        assert info.value.is_precondition_failure
        assert isinstance(info.value.cause, PreconditionError)

    def test_missing_neighbors_is_precondition_failure(self, template, planet, settings):
        """Test a neighbor-walking stage refuses to run on a bare template"""
        profile = StageProfile.of("wind_only", [StageId.BASE_SURFACE, StageId.CLIMATE, StageId.WIND])
        with pytest.raises(StageFailedError) as info:
            create_pipeline(profile).run(template, planet, settings)
        assert info.value.stage_id == StageId.WIND
        assert info.value.is_precondition_failure

    def test_water_classify_needs_base_snapshot(self, template, planet, settings):
        """Test water classification without the base surface snapshot fails"""
        profile = StageProfile.of("classify_only", [StageId.NEIGHBORS, StageId.WATER_CLASSIFY])
        with pytest.raises(StageFailedError) as info:
            create_pipeline(profile).run(template, planet, settings)
        assert info.value.stage_id == StageId.WATER_CLASSIFY
        assert info.value.is_precondition_failure

    def test_id_mismatch_rejected_before_any_stage(self, planet, settings):
        """Test tiles whose ids differ from positions are rejected up front"""
        log = []
        tiles = [Tile(0, 0.0, 0.0), Tile(2, 10.0, 10.0)]
        with pytest.raises(TileDataError):
            _pipeline([RecordingStage(StageId.NEIGHBORS, log)]).run(tiles, planet, settings)
        assert log == []


class TestListenerAndProgress:
    """Tests for lifecycle reporting"""

    def test_listener_sees_skipped_stages(self, template, planet, settings):
        """Test disabled stages are reported as skipped"""
        log = []
        listener = CollectingListener()
        stages = [RecordingStage(StageId.NEIGHBORS, log), RecordingStage(StageId.CLIMATE, log)]
        profile = StageProfile.of("neighbors", [StageId.NEIGHBORS])
        _pipeline(stages, profile, listener).run(template, planet, settings)

        assert log == [StageId.NEIGHBORS]
        assert listener.skipped == [StageId.CLIMATE]
        assert listener.ended == [StageId.NEIGHBORS]
        assert listener.started[0] == (StageId.NEIGHBORS, 0.0)

    def test_progress_reaches_100(self, template, planet, settings):
        """Test the progress callback ends at 100 percent"""
        updates = []
        stages = [RecordingStage(StageId.NEIGHBORS, []), RecordingStage(StageId.CLIMATE, [])]
        pipeline = GenerationPipeline(stages, progress_callback=lambda name, pct: updates.append(pct),
                                      validate=False)
        pipeline.run(template, planet, settings)
        assert updates[-1] == pytest.approx(100.0)
        assert updates == sorted(updates)


class TestIdIndexInvariant:
    """Tile ids equal positions through a real run"""

    def test_ids_equal_positions_after_full_run(self, template, settings):
        """Test the id/index invariant holds after every stage"""
        planet = PlanetConfig(water_coverage=WaterCoverage.OCEANS)
        context = create_pipeline(StageProfile.full()).run(template, planet, settings)
        assert all(t.id == i for i, t in enumerate(context.tiles))
        assert context.completed_stages == STAGE_ORDER


class TestProfiles:
    """Tests for stage profiles and world classification"""

    def test_named_profiles(self):
        """Test built-in profiles resolve by name"""
        assert StageProfile.named("airless").name == "airless"
        assert StageProfile.named("full").enabled == frozenset(STAGE_ORDER)

    def test_unknown_profile(self):
        """Test an unknown profile name raises"""
        with pytest.raises(ValueError):
            StageProfile.named("no_such_profile")

    def test_classify_world(self):
        """Test world types from planet conditions"""
        assert classify_world(PlanetConfig()) == WorldType.ROCKY_TECTONIC
        assert classify_world(PlanetConfig(lava_world=True)) == WorldType.LAVA_WORLD
        assert classify_world(PlanetConfig(has_atmosphere=False)) == WorldType.AIRLESS
        assert classify_world(PlanetConfig(atmosphere_density=0.01)) == WorldType.AIRLESS
        assert classify_world(PlanetConfig(max_temperature_k=250.0, mean_temperature_k=220.0)) == WorldType.ICE_ROCKY
        assert classify_world(PlanetConfig(max_temperature_k=120.0, mean_temperature_k=95.0)) == WorldType.ICE_VOLATILE

    def test_for_planet(self):
        """Test profile choice per world type"""
        assert StageProfile.for_planet(PlanetConfig(has_atmosphere=False)).name == "airless"
        assert StageProfile.for_planet(PlanetConfig(lava_world=True)).name == "lava_world"
        assert StageProfile.for_planet(PlanetConfig()).name == "up_to_erosion_with_recalc"
        barren = PlanetConfig(has_life=False, water_coverage=WaterCoverage.LAKES)
        assert StageProfile.for_planet(barren).name == "up_to_erosion"

    def test_settings_are_frozen(self):
        """Test generation settings cannot change mid-run"""
        settings = GeneratorSettings(seed=1)
        with pytest.raises(Exception):
            settings.seed = 2


class TestStageValidation:
    """Tests for post-stage checks"""

    def test_neighbor_counts_checked(self, make_context):
        """Test a pentagon with six neighbors fails validation"""
        context = make_context()
        context.tiles[0].neighbors = context.tiles[0].neighbors + [40]
        with pytest.raises(StageValidationError):
            validate_stage(StageId.NEIGHBORS, context)

    def test_elevation_range_checked(self, make_context):
        context = make_context()
        context.tiles[3].elevation = 300
        with pytest.raises(StageValidationError):
            validate_stage(StageId.EROSION, context)

    def test_unchecked_stage_passes(self, make_context):
        validate_stage(StageId.RESOURCES, make_context())

    def test_validation_failure_stops_pipeline(self, template, planet, settings):
        """Test a stage leaving UNKNOWN tiles fails as that stage"""
        pipeline = GenerationPipeline([RecordingStage(StageId.BASE_SURFACE, [])])
        with pytest.raises(StageFailedError) as info:
            pipeline.run(template, planet, settings)
        assert info.value.stage_id == StageId.BASE_SURFACE
        assert isinstance(info.value.cause, StageValidationError)
