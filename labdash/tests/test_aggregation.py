"""
Aggregation Engine Test Module

Tests for labdash/services/aggregation.py, driven through the counting fake
pool so every operation also exercises query building, the gateway and the
response shaper.

Test Coverage:
- Rate and percentage-change calculations, including zero baselines
- Facility ranking order, tie-breaking and omission of zero-unsat facilities
- Unsatisfactory rate with and without the volume gate
- Province comparison with the nearby bucket and padded county names
- Monthly and cumulative counts
- Summary card totals on a single connection
- Facility detail operations
"""

from typing import Any, Dict

import pytest

from labdash.core.errors import InvalidWindow
from labdash.models.enums import SpecimenCategory
from labdash.services.aggregation import (
    AggregationEngine,
    compute_unsat_rate,
    percentage_delta,
    volume_threshold_for,
)
from labdash.services.classification import NEARBY_GROUP
from labdash.services.windows import parse_window


# =============================================================================
# Test Data Helpers
# =============================================================================

def facility_row(submitter_id: str, name: str, county: str, total: int, unsat: int) -> Dict[str, Any]:
    return {
        "submitter_id": submitter_id,
        "facility_name": name,
        "county": county,
        "total_samples": total,
        "unsatisfactory_count": unsat,
    }


def count_row(submitter_id: str, county: str, spectype: str, samples: int, labno: int,
              year: int = None, month: int = None) -> Dict[str, Any]:
    row = {
        "submitter_id": submitter_id,
        "county": county,
        "spectype": spectype,
        "total_samples": samples,
        "total_labno": labno,
    }
    if year is not None:
        row["year"] = year
        row["month"] = month
    return row


@pytest.fixture
def ranked_rows():
    return [
        facility_row("1204", "ALPHA CLINIC   ", "BATANGAS", 100, 5),
        facility_row("1300", "BETA HOSPITAL", "LAGUNA", 50, 5),
        facility_row("1400", "GAMMA RHU", "LAGUNA ", 80, 9),
        facility_row("1500", "DELTA LYING-IN", "LAGUNA", 30, 0),
    ]


# =============================================================================
# Pure Calculations
# =============================================================================

class TestComputeUnsatRate:

    def test_basic_rate(self):
        assert compute_unsat_rate(5, 100) == 5.0

    def test_rounded_to_two_decimals(self):
        assert compute_unsat_rate(1, 3) == 33.33

    @pytest.mark.parametrize("unsat,total,expected", [
        (9, 800, 1.13),
        (1, 8, 12.5),
        (1, 200, 0.5),
    ])
    def test_half_cent_rounds_up(self, unsat, total, expected):
        assert compute_unsat_rate(unsat, total) == expected

    def test_zero_total_is_zero_not_nan(self):
        assert compute_unsat_rate(3, 0) == 0.0
        assert compute_unsat_rate(0, 0) == 0.0


class TestPercentageDelta:

    @pytest.mark.parametrize("a,b,expected", [
        (40, 45, "+12.50%"),
        (100, 97, "-3.00%"),
        (10, 10, "0.00%"),
        (3, 0, "-100.00%"),
        (3, 4, "+33.33%"),
        (800, 809, "+1.13%"),
        (800, 791, "-1.13%"),
    ])
    def test_signed_two_decimal_format(self, a, b, expected):
        assert percentage_delta(a, b) == expected

    @pytest.mark.parametrize("b", [0, 7])
    def test_zero_baseline(self, b):
        assert percentage_delta(0, b) == "N/A"


class TestVolumeThreshold:

    @pytest.mark.parametrize("months,expected", [
        (0, 50), (1, 50), (2, 150), (3, 150), (4, 300), (6, 300), (7, 600), (12, 600),
    ])
    def test_default_thresholds(self, months, expected):
        assert volume_threshold_for(months) == expected

    def test_custom_thresholds(self):
        assert volume_threshold_for(2, {2: 10}, maximum=99) == 10
        assert volume_threshold_for(3, {2: 10}, maximum=99) == 99


# =============================================================================
# Facility Rankings
# =============================================================================

class TestTopUnsatisfactory:

    @pytest.mark.asyncio
    async def test_sorted_by_count_with_name_tiebreak(self, engine, counting_pool,
                                                      january_window, ranked_rows):
        counting_pool.queue(ranked_rows)

        result = await engine.top_unsatisfactory_by_count(january_window)

        assert [f.facility_name for f in result] == ["GAMMA RHU", "ALPHA CLINIC", "BETA HOSPITAL"]
        assert [f.unsatisfactory_count for f in result] == [9, 5, 5]
        assert counting_pool.outstanding == 0

    @pytest.mark.asyncio
    async def test_zero_unsat_facilities_omitted(self, engine, counting_pool,
                                                 january_window, ranked_rows):
        counting_pool.queue(ranked_rows)

        result = await engine.top_unsatisfactory_by_count(january_window)

        assert "DELTA LYING-IN" not in [f.facility_name for f in result]

    @pytest.mark.asyncio
    async def test_unsat_never_exceeds_total(self, engine, counting_pool,
                                             january_window, ranked_rows):
        counting_pool.queue(ranked_rows)

        for facility in await engine.top_unsatisfactory_by_count(january_window):
            assert facility.unsatisfactory_count <= facility.total_samples
            assert 0.0 <= facility.unsat_rate <= 100.0

    @pytest.mark.asyncio
    async def test_province_filter_reaches_query_and_result(self, engine, counting_pool,
                                                            january_window):
        counting_pool.queue([
            facility_row("1204", "ALPHA CLINIC", "BATANGAS", 100, 5),
            facility_row("51", "NEARBY RHU", "BATANGAS", 40, 3),
        ])

        result = await engine.top_unsatisfactory_by_count(january_window, province="batangas")

        assert [f.submitter_id for f in result] == ["1204"]
        sql, params = counting_pool.connection.queries[0]
        assert "BATANGAS" in params

    @pytest.mark.asyncio
    async def test_nearby_province_groups_submitters(self, engine, counting_pool, january_window):
        counting_pool.queue([
            facility_row("51", "NEARBY RHU", "BATANGAS", 40, 3),
            facility_row("174", "OTHER NEARBY", None, 20, 1),
        ])

        result = await engine.top_unsatisfactory_by_count(january_window, province=NEARBY_GROUP)

        assert {f.province for f in result} == {NEARBY_GROUP}
        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_empty_result(self, engine, counting_pool, january_window):
        assert await engine.top_unsatisfactory_by_count(january_window) == []
        assert counting_pool.outstanding == 0

    @pytest.mark.asyncio
    async def test_repeated_calls_are_identical(self, engine, counting_pool,
                                                january_window, ranked_rows):
        counting_pool.queue(list(ranked_rows), list(ranked_rows))

        first = await engine.top_unsatisfactory_by_count(january_window)
        second = await engine.top_unsatisfactory_by_count(january_window)

        assert first == second


class TestUnsatisfactoryRate:

    @pytest.mark.asyncio
    async def test_single_facility_rate(self, engine, counting_pool, january_window):
        counting_pool.queue([facility_row("1204", "ALPHA CLINIC", "BATANGAS", 100, 5)])

        result = await engine.unsatisfactory_rate(january_window, facility="alpha clinic")

        assert len(result) == 1
        assert result[0].unsat_rate == 5.0
        assert result[0].total_samples == 100
        sql, params = counting_pool.connection.queries[0]
        assert "ALPHA CLINIC" in params

    @pytest.mark.asyncio
    async def test_volume_gate_without_facility(self, engine, counting_pool,
                                                january_window, ranked_rows):
        counting_pool.queue(ranked_rows)

        result = await engine.unsatisfactory_rate(january_window)

        # one-month window: total must exceed 50
        assert [f.facility_name for f in result] == ["GAMMA RHU", "ALPHA CLINIC"]
        assert [f.unsat_rate for f in result] == [11.25, 5.0]

    @pytest.mark.asyncio
    async def test_volume_gate_skipped_for_named_facility(self, engine, counting_pool,
                                                          january_window):
        counting_pool.queue([facility_row("1300", "BETA HOSPITAL", "LAGUNA", 20, 0)])

        result = await engine.unsatisfactory_rate(january_window, facility="BETA HOSPITAL")

        assert len(result) == 1
        assert result[0].unsat_rate == 0.0

    @pytest.mark.asyncio
    async def test_rate_ties_broken_by_count(self, engine, counting_pool, january_window):
        counting_pool.queue([
            facility_row("1204", "ALPHA CLINIC", "BATANGAS", 100, 5),
            facility_row("1600", "ZETA MEDICAL", "CAVITE", 200, 10),
        ])

        result = await engine.unsatisfactory_rate(january_window)

        assert [f.facility_name for f in result] == ["ZETA MEDICAL", "ALPHA CLINIC"]

    @pytest.mark.asyncio
    async def test_longer_window_raises_threshold(self, counting_pool, repository, rules):
        engine = AggregationEngine(repository, rules)
        window = parse_window("2024-01-01", "2024-12-31")
        counting_pool.queue([
            facility_row("1204", "ALPHA CLINIC", "BATANGAS", 600, 30),
            facility_row("1600", "ZETA MEDICAL", "CAVITE", 601, 30),
        ])

        result = await engine.unsatisfactory_rate(window)

        assert [f.facility_name for f in result] == ["ZETA MEDICAL"]


class TestProvinceSubset:
    """A province-filtered ranking only ever drops rows from the unfiltered one."""

    @pytest.fixture
    def mixed_rows(self):
        return [
            facility_row("1204", "ALPHA CLINIC", "BATANGAS", 100, 5),
            facility_row("51", "NEARBY RHU", "BATANGAS", 200, 3),
            facility_row("1300", "BETA HOSPITAL", "LAGUNA", 60, 5),
        ]

    @pytest.mark.asyncio
    async def test_top_unsatisfactory(self, engine, counting_pool, january_window, mixed_rows):
        counting_pool.queue(list(mixed_rows), list(mixed_rows))

        everywhere = await engine.top_unsatisfactory_by_count(january_window, province=None)
        batangas = await engine.top_unsatisfactory_by_count(january_window, province="BATANGAS")

        all_ids = {f.submitter_id for f in everywhere}
        batangas_ids = {f.submitter_id for f in batangas}
        assert batangas_ids <= all_ids
        assert batangas_ids == {"1204"}
        assert "51" in all_ids

    @pytest.mark.asyncio
    async def test_unsatisfactory_rate(self, engine, counting_pool, january_window, mixed_rows):
        counting_pool.queue(list(mixed_rows), list(mixed_rows))

        everywhere = await engine.unsatisfactory_rate(january_window, province=None)
        batangas = await engine.unsatisfactory_rate(january_window, province="BATANGAS")

        all_ids = {f.submitter_id for f in everywhere}
        batangas_ids = {f.submitter_id for f in batangas}
        assert batangas_ids <= all_ids
        assert batangas_ids == {"1204"}
        assert all_ids == {"1204", "51", "1300"}


# =============================================================================
# Province Comparison
# =============================================================================

class TestProvinceComparison:

    @pytest.mark.asyncio
    async def test_rows_per_province(self, engine, counting_pool, january_window):
        previous = parse_window("2023-01-01", "2023-01-31")
        counting_pool.queue([
            {"submitter_id": "1204", "county": "BATANGAS  ", "period1_count": 4, "period2_count": 5},
            {"submitter_id": "1205", "county": "BATANGAS", "period1_count": 6, "period2_count": 0},
            {"submitter_id": "1300", "county": "LAGUNA", "period1_count": 40, "period2_count": 45},
            {"submitter_id": "51", "county": "QUEZON", "period1_count": 0, "period2_count": 2},
        ])

        rows = await engine.province_comparison(previous, january_window)

        assert [r.province for r in rows] == ["BATANGAS", "LAGUNA", NEARBY_GROUP]
        batangas, laguna, nearby = rows
        assert (batangas.period1_count, batangas.period2_count) == (10, 5)
        assert batangas.difference == -5
        assert batangas.percentage_change == "-50.00%"
        assert laguna.percentage_change == "+12.50%"
        assert nearby.percentage_change == "N/A"
        assert counting_pool.outstanding == 0

    @pytest.mark.asyncio
    async def test_empty(self, engine, january_window):
        assert await engine.province_comparison(january_window, january_window) == []


# =============================================================================
# Received / Screened Counts
# =============================================================================

class TestMonthlyLabCount:

    @pytest.fixture
    def laguna_rows(self):
        return [
            count_row("1300", "LAGUNA", "20", 10, 10, 2024, 1),
            count_row("1301", "LAGUNA  ", "1", 4, 3, 2024, 1),
            count_row("1300", "LAGUNA", "20", 7, 7, 2024, 2),
            count_row("51", "LAGUNA", "20", 99, 99, 2024, 1),
        ]

    @pytest.mark.asyncio
    async def test_one_row_per_month(self, engine, counting_pool, january_window, laguna_rows):
        counting_pool.queue(laguna_rows)

        months = await engine.monthly_lab_count(
            january_window, SpecimenCategory.SCREENED, province="LAGUNA"
        )

        assert [m.month_year for m in months] == ["2024-01", "2024-02"]
        january = months[0]
        assert january.province == "LAGUNA"
        assert january.category == "Screened"
        assert (january.total_samples, january.total_labno) == (14, 13)
        assert [s.spectype for s in january.spectypes] == ["1", "20"]

    @pytest.mark.asyncio
    async def test_report_envelope(self, engine, counting_pool, january_window, laguna_rows):
        counting_pool.queue(laguna_rows)

        report = await engine.monthly_report(
            january_window, SpecimenCategory.SCREENED, province="LAGUNA"
        )

        assert report.success is True
        assert report.parameters.type == "Screened"
        assert report.parameters.spectypes == ["20", "1"]
        assert report.parameters.dateRange == {"from": "2024-01-01", "to": "2024-01-31"}
        assert report.summary.totalRecords == 3
        assert report.summary.totalSamples == 21
        assert report.summary.totalLabNo == 20

    @pytest.mark.asyncio
    async def test_month_spanning_groups_reports_all(self, engine, counting_pool, january_window):
        counting_pool.queue([
            count_row("1300", "LAGUNA", "20", 10, 10, 2024, 1),
            count_row("51", "LAGUNA", "20", 5, 5, 2024, 1),
        ])

        months = await engine.monthly_lab_count(january_window, SpecimenCategory.RECEIVED)

        assert len(months) == 1
        assert months[0].province == "all"
        assert months[0].category == "Received"
        assert months[0].total_samples == 15

    @pytest.mark.asyncio
    async def test_empty_report(self, engine, january_window):
        report = await engine.monthly_report(january_window, SpecimenCategory.RECEIVED)

        assert report.monthlyData == []
        assert report.rawData == []
        assert report.summary.totalRecords == 0
        assert report.summary.totalSamples == 0


class TestCumulativeAllProvince:

    @pytest.mark.asyncio
    async def test_reporting_provinces_then_nearby(self, engine, counting_pool, january_window):
        counting_pool.queue([
            count_row("1204", "BATANGAS", "20", 10, 10),
            count_row("1204", "BATANGAS", "87", 2, 2),
            count_row("1300", "LAGUNA ", "20", 5, 5),
            count_row("51", "QUEZON", "20", 3, 3),
            count_row("2000", "MANILA", "20", 100, 100),
        ])

        report = await engine.cumulative_report(january_window, SpecimenCategory.RECEIVED)

        assert [c.province for c in report.cumulativeData] == ["BATANGAS", "LAGUNA", NEARBY_GROUP]
        assert report.cumulativeData[0].total_samples == 12
        assert [s.spectype for s in report.cumulativeData[0].spectypes] == ["20", "87"]
        assert report.summary.totalSamples == 20
        assert report.parameters.spectypes == ["1", "87", "20", "2", "3", "4", "5", "18"]


# =============================================================================
# Summary Card
# =============================================================================

class TestCardSummary:

    @pytest.mark.asyncio
    async def test_three_counts_on_one_connection(self, engine, counting_pool, january_window):
        counting_pool.queue([{"total": 10}], [{"total": 8}], [{"total": 2}])

        summary = await engine.card_summary(january_window)

        assert (summary.received, summary.screened, summary.unsat) == (10, 8, 2)
        assert counting_pool.acquired == 1
        assert counting_pool.released == 1

    @pytest.mark.asyncio
    async def test_defaults_to_current_month(self, engine, counting_pool):
        summary = await engine.card_summary()

        assert (summary.received, summary.screened, summary.unsat) == (0, 0, 0)
        assert len(counting_pool.connection.queries) == 3


# =============================================================================
# Single Facility
# =============================================================================

class TestFacilityDetail:

    @pytest.mark.asyncio
    async def test_facility_required(self, engine, counting_pool, january_window):
        with pytest.raises(InvalidWindow):
            await engine.unsatisfactory_details(january_window, None)
        with pytest.raises(InvalidWindow):
            await engine.facility_total_samples(january_window, "   ")
        assert counting_pool.acquired == 0

    @pytest.mark.asyncio
    async def test_detail_rows_trimmed(self, engine, counting_pool, january_window):
        counting_pool.queue([{
            "labno": "20240011001",
            "first_name": "ANA  ",
            "last_name": "CRUZ",
            "test_result": "Insufficient ",
            "facility_name": "ALPHA CLINIC   ",
            "province": "BATANGAS ",
        }])

        details = await engine.unsatisfactory_details(january_window, "ALPHA CLINIC")

        assert details[0].first_name == "ANA"
        assert details[0].facility_name == "ALPHA CLINIC"
        assert details[0].province == "BATANGAS"

    @pytest.mark.asyncio
    async def test_patient_list_without_mnemonic_filter(self, engine, counting_pool,
                                                        january_window, rules):
        await engine.facility_patient_list(january_window, "ALPHA CLINIC")

        sql, params = counting_pool.connection.queries[0]
        assert list(rules.unsatisfactory_mnemonics) not in params

    @pytest.mark.asyncio
    async def test_total_samples(self, engine, counting_pool, january_window):
        counting_pool.queue([{"total_samples": 42}])
        assert await engine.facility_total_samples(january_window, "ALPHA CLINIC") == 42

    @pytest.mark.asyncio
    async def test_total_samples_no_rows(self, engine, january_window):
        assert await engine.facility_total_samples(january_window, "ALPHA CLINIC") == 0
