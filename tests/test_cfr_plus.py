import numpy as np
import pytest
from cfr.cfr_plus import CFRPlus, counterfactual_reach
from cfr.errors import ContractViolation
from cfr.table import NodeTable
from games.kuhn import KuhnState

from conftest import (
    BadChance,
    BadPlayer,
    EndlessRaise,
    GuessGame,
    NoActions,
    ShiftingActions,
)


class TestCFRTraversal:
    @pytest.fixture
    def cfr(self):
        return CFRPlus(NodeTable())

    def test_terminal_returns_utility(self, cfr):
        """At terminal state, CFR should return actual utility and touch no node."""
        # P0 has King, P1 has Jack, check-check -> P0 wins 1
        state = KuhnState(cards=(2, 0), history=("p", "p"))
        assert cfr.traverse(state, 0) == 1.0
        assert cfr.traverse(state, 1) == -1.0
        assert len(cfr.table) == 0

    def test_value_under_uniform_strategy(self, cfr, guess_root):
        """Uniform play in the guess game is worth 0.25 to player 0."""
        assert cfr.traverse(guess_root, 0) == pytest.approx(0.25)

    def test_regret_update_for_traverser(self, cfr, guess_root):
        """x is worth 0.5, y is worth 0; regrets relative to 0.25, y clamped."""
        cfr.traverse(guess_root, 0)
        node = cfr.table.get("p0")
        np.testing.assert_allclose(node.regret_sum, [0.25, 0.0])
        np.testing.assert_allclose(node.strategy_sum, [0.5, 0.5])
        assert node.visits == 1

    def test_only_traverser_nodes_updated(self, cfr, guess_root):
        """Opponent nodes are read but not updated in player 0's traversal."""
        cfr.traverse(guess_root, 0)
        assert cfr.table.get("p1").visits == 0

    def test_opponent_regret_weighted_by_counterfactual_reach(self, cfr, guess_root):
        """Player 1's info set is updated once per player-0 history, weighted by π_0 = 0.5."""
        cfr.traverse(guess_root, 1)
        node = cfr.table.get("p1")
        # After x, uniform: u1 = (-2, 1), mean -0.5 -> 0.5 * (-1.5, 1.5) -> (0, 0.75)
        # After y, strategy now (0, 1): u1 = (1, -1), value -1 -> 0.5 * (2, 0) -> (1, 0.75)
        np.testing.assert_allclose(node.regret_sum, [1.0, 0.75])
        np.testing.assert_allclose(node.strategy_sum, [0.5, 1.5])
        assert node.visits == 2

    def test_explicit_reach(self, cfr, guess_root):
        """A caller-supplied reach vector scales the counterfactual regret."""
        cfr.traverse(guess_root, 0, reach=[1.0, 0.5, 0.5])
        np.testing.assert_allclose(cfr.table.get("p0").regret_sum, [0.0625, 0.0])

    def test_kuhn_iteration_visits_all_info_sets(self, kuhn_root):
        """One iteration touches all 12 information sets, each via 2 deals."""
        cfr = CFRPlus(NodeTable())
        cfr.iterate([kuhn_root])
        assert len(cfr.table) == 12
        for key, node in cfr.table.items():
            assert node.visits == 2, key

    def test_regrets_never_negative(self, kuhn_root):
        """After training, regrets should be >= 0 (CFR+ property)."""
        cfr = CFRPlus(NodeTable())
        for _ in range(100):
            cfr.iterate([kuhn_root])
        for _, node in cfr.table.items():
            assert (node.regret_sum >= 0).all()

    def test_average_strategies_are_distributions(self, kuhn_root):
        cfr = CFRPlus(NodeTable())
        for _ in range(50):
            cfr.iterate([kuhn_root])
        for _, node in cfr.table.items():
            avg = node.average_strategy()
            assert (avg >= 0).all()
            assert avg.sum() == pytest.approx(1.0)


class TestCounterfactualReach:
    def test_excludes_own_reach(self):
        reach = np.array([0.5, 0.25, 0.1])
        assert counterfactual_reach(reach, 0) == pytest.approx(0.025)
        assert counterfactual_reach(reach, 1) == pytest.approx(0.05)


class TestDepthLimit:
    def test_single_line_stops_at_max_depth(self):
        """A never-ending raise war returns after max_depth + 1 calls."""
        root = EndlessRaise()
        cfr = CFRPlus(NodeTable(), max_depth=10)
        value = cfr.traverse(root, 0)

        assert value == pytest.approx(0.25)  # estimate_utility at the cutoff
        assert cfr.nodes_touched == 11
        assert cfr.cutoffs == 1
        assert max(root.log) == 10

    def test_branching_war_never_exceeds_max_depth(self):
        root = EndlessRaise(width=2)
        cfr = CFRPlus(NodeTable(), max_depth=6)
        cfr.traverse(root, 1)

        assert max(root.log) <= 6
        assert cfr.nodes_touched == 2 ** 7 - 1
        assert cfr.cutoffs == 2 ** 6

    def test_zero_fallback(self):
        cfr = CFRPlus(NodeTable(), max_depth=4, fallback="zero")
        assert cfr.traverse(EndlessRaise(), 0) == 0.0

    def test_custom_fallback(self):
        cfr = CFRPlus(NodeTable(), max_depth=3, fallback=lambda state, player: 7.0)
        assert cfr.traverse(EndlessRaise(), 0) == pytest.approx(7.0)

    def test_zero_depth_evaluates_root(self):
        cfr = CFRPlus(NodeTable(), max_depth=0)
        assert cfr.traverse(EndlessRaise(), 1) == pytest.approx(-0.25)
        assert len(cfr.table) == 0

    def test_terminal_beats_cutoff(self):
        """A terminal state at the cutoff still reports its real utility."""
        cfr = CFRPlus(NodeTable(), max_depth=2)
        assert cfr.traverse(GuessGame(("x", "x")), 0, depth=5) == 2.0

    def test_unknown_fallback_name(self):
        with pytest.raises(ValueError):
            CFRPlus(NodeTable(), fallback="bogus")

    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError):
            CFRPlus(NodeTable(), max_depth=-1)


class TestContractViolations:
    @pytest.fixture
    def cfr(self):
        return CFRPlus(NodeTable())

    def test_no_legal_actions(self, cfr):
        with pytest.raises(ContractViolation):
            cfr.traverse(NoActions(), 0)

    def test_unknown_player(self, cfr):
        with pytest.raises(ContractViolation):
            cfr.traverse(BadPlayer(), 0)

    def test_chance_probabilities_must_sum_to_one(self, cfr):
        with pytest.raises(ContractViolation):
            cfr.traverse(BadChance(), 0)

    def test_action_count_changes_within_info_set(self, cfr):
        with pytest.raises(ContractViolation):
            cfr.traverse(ShiftingActions(), 0)

    def test_reach_vector_size_mismatch(self, cfr, guess_root):
        with pytest.raises(ContractViolation):
            cfr.traverse(guess_root, 0, reach=[1.0, 1.0])

    def test_player_out_of_range(self, cfr, guess_root):
        with pytest.raises(ValueError):
            cfr.traverse(guess_root, 2)
