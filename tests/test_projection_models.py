"""Tests for Projection and PlayerProjection."""

import pytest

from src.errors import InvalidInputError
from src.projections.models import PlayerProjection, Projection
from src.projections.truncated_normal import TruncatedNormalParams


def _make_projection(**overrides):
    dist = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
    defaults = {
        "mean": dist.mean(),
        "variance": dist.variance(),
        "floor": 8.6,
        "median": 15.0,
        "ceiling": 21.4,
        "lower_bound": 0.0,
        "upper_bound": 40.0,
        "distribution": dist,
        "confidence": 1.0,
    }
    defaults.update(overrides)
    return Projection(**defaults)


# ── Projection ───────────────────────────────────────────────────────


class TestProjection:
    def test_valid(self):
        proj = _make_projection()
        assert proj.std == pytest.approx(proj.variance ** 0.5)

    def test_rejects_unordered_quantiles(self):
        with pytest.raises(InvalidInputError, match="floor <= median"):
            _make_projection(floor=16.0)

    def test_rejects_floor_below_lower_bound(self):
        with pytest.raises(InvalidInputError):
            _make_projection(floor=-1.0)

    def test_rejects_negative_variance(self):
        with pytest.raises(InvalidInputError, match="variance"):
            _make_projection(variance=-1.0)

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_rejects_confidence_out_of_range(self, confidence):
        with pytest.raises(InvalidInputError, match="confidence"):
            _make_projection(confidence=confidence)

    def test_from_distribution(self):
        dist = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        proj = Projection.from_distribution(dist, confidence=0.8)
        assert proj.mean == pytest.approx(dist.mean())
        assert proj.median == pytest.approx(dist.quantile(0.5))
        assert proj.floor < proj.median < proj.ceiling
        assert (proj.lower_bound, proj.upper_bound) == (0.0, 40.0)
        assert proj.confidence == 0.8

    def test_from_quantiles_keeps_observed_values(self):
        proj = Projection.from_quantiles(8.59, 15.0, 21.41, "RB")
        assert (proj.floor, proj.median, proj.ceiling) == (8.59, 15.0, 21.41)
        assert proj.mean == pytest.approx(15.0, abs=0.2)
        assert proj.lower_bound <= proj.floor
        assert proj.ceiling <= proj.upper_bound

    def test_from_quantiles_moments_match_distribution(self):
        proj = Projection.from_quantiles(4.0, 9.0, 16.0, "TE")
        assert proj.mean == pytest.approx(proj.distribution.mean())
        assert proj.variance == pytest.approx(proj.distribution.variance())

    def test_immutable(self):
        proj = _make_projection()
        with pytest.raises(AttributeError):
            proj.mean = 3.0


# ── PlayerProjection ─────────────────────────────────────────────────


class TestPlayerProjection:
    def test_primary_position_always_eligible(self):
        player = PlayerProjection("p1", "Player", "KC", "RB", _make_projection())
        assert player.eligible_positions == frozenset({"RB"})

    def test_extra_eligibility_kept(self):
        player = PlayerProjection(
            "p1", "Player", "KC", "RB", _make_projection(), eligible_positions={"WR"}
        )
        assert player.eligible_positions == frozenset({"RB", "WR"})

    def test_empty_id_rejected(self):
        with pytest.raises(InvalidInputError, match="player_id"):
            PlayerProjection("", "Player", "KC", "RB", _make_projection())

    def test_delegates_moments(self):
        proj = _make_projection()
        player = PlayerProjection("p1", "Player", "KC", "RB", proj)
        assert player.mean == proj.mean
        assert player.variance == proj.variance
        assert player.std == proj.std
        assert player.distribution is proj.distribution
        assert player.is_active
