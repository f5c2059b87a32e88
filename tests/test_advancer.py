"""
Tests for moving jobs to their done phase.
"""

import re

from dispatchboard.advancer import StageAdvancer
from dispatchboard.config import AdvanceTarget
from dispatchboard.models import Board, JobType, Phase

from conftest import FakeCrm


class TestAdvance:
    def test_transport_goes_to_client_phase(self, scenario_crm):
        assert StageAdvancer(scenario_crm).advance(500, JobType.TRANSPORT) is True

        assert ("update_record_phase", 500, 12) in scenario_crm.calls
        assert ("list_phases", 1) in scenario_crm.calls

    def test_service_goes_to_done_phase(self, scenario_crm):
        assert StageAdvancer(scenario_crm).advance(501, JobType.SERVICE) is True

        assert ("update_record_phase", 501, 22) in scenario_crm.calls

    def test_board_not_found(self):
        crm = FakeCrm(boards=[Board(2, "Serwis")], phases={2: [Phase(22, "Wykonanie")]})

        assert StageAdvancer(crm).advance(500, JobType.TRANSPORT) is False
        assert not any(c[0] == "update_record_phase" for c in crm.calls)
        assert not any(c[0] == "list_phases" for c in crm.calls)

    def test_phase_not_found(self):
        crm = FakeCrm(boards=[Board(1, "Dostarczenie")], phases={1: [Phase(10, "Przygotowanie")]})

        assert StageAdvancer(crm).advance(500, JobType.TRANSPORT) is False
        assert not any(c[0] == "update_record_phase" for c in crm.calls)

    def test_update_failure(self, scenario_crm):
        scenario_crm.fail.add("update_record_phase")

        assert StageAdvancer(scenario_crm).advance(500, JobType.TRANSPORT) is False

    def test_boards_failure(self, scenario_crm):
        scenario_crm.fail.add("list_boards")

        assert StageAdvancer(scenario_crm).advance(500, JobType.TRANSPORT) is False

    def test_custom_targets(self):
        crm = FakeCrm(
            boards=[Board(5, "Lieferung")],
            phases={5: [Phase(50, "Offen"), Phase(51, "Beim Kunden")]},
            records=[],
        )
        targets = {
            "transport": AdvanceTarget(re.compile("lieferung", re.I), re.compile("kunden", re.I)),
        }

        assert StageAdvancer(crm, targets).advance(1, JobType.TRANSPORT) is False  # no such record
        assert ("update_record_phase", 1, 51) in crm.calls

    def test_missing_target_for_type(self, scenario_crm):
        advancer = StageAdvancer(scenario_crm, {"transport": StageAdvancer(scenario_crm).targets["transport"]})

        assert advancer.advance(501, JobType.SERVICE) is False
        assert scenario_crm.calls == []
