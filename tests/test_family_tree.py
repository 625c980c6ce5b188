"""Tests for the Graphviz genealogy export."""

import pytest

from famsim.family_tree import FamilyTreeExporter
from famsim.models import GameDate


@pytest.fixture
def family(make_state, make_character, married_couple):
    husband, wife = married_couple
    child = make_character(age=2, is_player_character=False, parents_ids=[husband.id, wife.id])
    husband.children_ids.append(child.id)
    wife.children_ids.append(child.id)
    wife.is_alive = False
    wife.death_date = GameDate(day=40, year=2024)
    state = make_state(husband, wife, child)
    state.total_children_born = 1
    return state, husband, wife, child


class TestFamilyTreeExporter:
    def test_rejects_unknown_direction(self):
        with pytest.raises(ValueError):
            FamilyTreeExporter(direction="RL")

    def test_nodes_and_edges(self, family):
        state, husband, wife, child = family
        source = FamilyTreeExporter(direction="LR").to_dot(state)

        assert "rankdir=LR" in source
        assert "#A0C878" in source
        for member in (husband, wife, child):
            assert member.id in source
        assert f"{husband.id} -> {child.id}" in source.replace('"', "")
        assert f"{wife.id} -> {child.id}" in source.replace('"', "")
        assert "Children born: 1" in source

    def test_spouses_are_joined_once(self, family):
        state, *_ = family
        source = FamilyTreeExporter().to_dot(state)
        assert source.count("dir=none") == 1
        assert source.count("rank=same") == 1

    def test_fill_marks_the_dead_and_the_player(self, family):
        state, husband, wife, child = family
        exporter = FamilyTreeExporter()
        assert exporter._fill(husband) == FamilyTreeExporter.PLAYER_FILL
        assert exporter._fill(wife) == FamilyTreeExporter.DEAD_FILL
        assert exporter._fill(child) == FamilyTreeExporter.ALIVE_FILL

    def test_label_shows_life_span(self, family):
        _, _, wife, _ = family
        label = FamilyTreeExporter.node_label(wife)
        assert "1996 - 2024" in label
        assert "Gen 0" in label

    def test_render_writes_at_least_the_source(self, family, tmp_path):
        state, *_ = family
        written = FamilyTreeExporter(output_dir=tmp_path).render(state, filename="tree")
        assert written is not None and written.exists()
        assert (tmp_path / "tree.gv").exists()
