"""Tests for oracle and print hashing."""
from tcg_catalog.core.hashing import compute_oracle_hash, compute_print_hash, normalize_name


class TestOracleHash:

    def test_same_content_same_hash(self):
        a = compute_oracle_hash("Lightning Bolt", "Instant", "Deals 3 damage.", {"mana_cost": "{R}"})
        b = compute_oracle_hash("Lightning Bolt", "Instant", "Deals 3 damage.", {"mana_cost": "{R}"})
        assert a == b
        assert len(a) == 64

    def test_formatting_drift_is_ignored(self):
        """Case and whitespace differences between providers do not split a card."""
        a = compute_oracle_hash("Lightning Bolt", "Instant", "Deals 3 damage.")
        b = compute_oracle_hash("  lightning   BOLT ", "instant", "Deals  3\ndamage.")
        assert a == b

    def test_different_text_changes_hash(self):
        a = compute_oracle_hash("Lightning Bolt", "Instant", "Deals 3 damage.")
        b = compute_oracle_hash("Lightning Bolt", "Instant", "Deals 4 damage.")
        assert a != b

    def test_unset_game_fields_do_not_change_hash(self):
        a = compute_oracle_hash("Pikachu", "Pokemon", None, {"hp": 60})
        b = compute_oracle_hash("Pikachu", "Pokemon", None, {"hp": 60, "retreat_cost": None})
        assert a == b

    def test_multi_valued_fields_are_order_independent(self):
        a = compute_oracle_hash("Boros Charm", "Instant", None, {"colors": ["R", "W"]})
        b = compute_oracle_hash("Boros Charm", "Instant", None, {"colors": ["W", "R"]})
        assert a == b

    def test_game_fields_distinguish_cards(self):
        a = compute_oracle_hash("Pikachu", "Pokemon", None, {"hp": 60})
        b = compute_oracle_hash("Pikachu", "Pokemon", None, {"hp": 70})
        assert a != b


class TestPrintHash:

    def test_print_hash_depends_on_printing(self):
        oracle = compute_oracle_hash("Lightning Bolt", "Instant")
        lea = compute_print_hash(oracle, "LEA", "161", "Christopher Rush")
        two_ed = compute_print_hash(oracle, "2ED", "161", "Christopher Rush")
        assert lea != two_ed

    def test_artist_distinguishes_printings(self):
        oracle = compute_oracle_hash("Forest", "Land")
        a = compute_print_hash(oracle, "LEA", "295", "Christopher Rush")
        b = compute_print_hash(oracle, "LEA", "295", "John Avon")
        assert a != b

    def test_set_code_case_is_ignored(self):
        oracle = compute_oracle_hash("Lightning Bolt", "Instant")
        assert compute_print_hash(oracle, "lea", "161") == compute_print_hash(oracle, "LEA", "161")


def test_normalize_name():
    assert normalize_name("Jace, the Mind Sculptor") == "jace the mind sculptor"
    assert normalize_name("  Fire // Ice ") == "fire ice"
