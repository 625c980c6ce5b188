"""
famsim/family_tree.py
~~~~~~~~~~~~~~~~~~~~~
Genealogy export of a game state as a Graphviz graph.

Nodes are coloured by gender (blue border for men, red for women) and filled
grey once a character has died. Parent to child edges are plain arrows;
spouses are joined by a bold undirected line and held on the same rank.
Building the graph needs only the ``graphviz`` package; rendering to an
image additionally needs the Graphviz ``dot`` executable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import graphviz

from famsim.models import Character, GameState, Gender
from famsim.paths import TREE_OUTPUT_DIR

logger = logging.getLogger(__name__)

#########################################################
#   Valid directions for the graph layout:              #
#   LR - Left->Right                                    #
#   TB - Top->Bottom                                    #
#########################################################


class FamilyTreeExporter:
    BACKGROUND = "#A0C878"
    ALIVE_FILL = "white"
    DEAD_FILL = "lightgrey"
    PLAYER_FILL = "pink"

    def __init__(self, direction: str = "TB", output_dir: str | Path = TREE_OUTPUT_DIR) -> None:
        if direction not in ("LR", "TB"):
            raise ValueError(f"Unsupported tree direction '{direction}'; use LR or TB.")
        self.direction = direction
        self.output_dir = Path(output_dir)

    @staticmethod
    def node_label(character: Character) -> str:
        born = character.birth_date.year
        died = character.death_date.year if character.death_date else ""
        return f"{character.name}\n{born} - {died} ({character.age})\nGen {character.generation}"

    def _fill(self, character: Character) -> str:
        if not character.is_alive:
            return self.DEAD_FILL
        return self.PLAYER_FILL if character.is_player_character else self.ALIVE_FILL

    def build(self, state: GameState) -> graphviz.Digraph:
        graph = graphviz.Digraph(
            comment="Family Tree",
            graph_attr={"rankdir": self.direction, "bgcolor": self.BACKGROUND},
        )
        members = state.family_members

        living = sum(1 for c in members.values() if c.is_alive)
        summary = f"Total Members: {len(members)}\nLiving: {living}\nChildren born: {state.total_children_born}"
        graph.node("family_count", label=summary, shape="plaintext", color="transparent")

        # Eldest first so generations read top to bottom.
        ordered = sorted(members.values(), key=lambda c: (c.birth_date.year, c.birth_date.day))
        for character in ordered:
            graph.node(
                character.id,
                label=self.node_label(character),
                shape="box",
                style="filled",
                fillcolor=self._fill(character),
                color="red" if character.gender == Gender.FEMALE else "blue",
                penwidth="3",
            )

        for character in ordered:
            for parent_id in character.parents_ids:
                if parent_id in members:
                    graph.edge(parent_id, character.id)

        drawn: set[frozenset[str]] = set()
        for character in ordered:
            partner_id = character.partner_id
            if partner_id is None or partner_id not in members:
                continue
            pair = frozenset((character.id, partner_id))
            if pair in drawn:
                continue
            drawn.add(pair)
            with graph.subgraph() as s:
                s.attr(rank="same")
                s.node(character.id)
                s.node(partner_id)
                s.edge(character.id, partner_id, style="bold", penwidth="3", color="black", dir="none")
        return graph

    def to_dot(self, state: GameState) -> str:
        return self.build(state).source

    def render(self, state: GameState, filename: str = "family_tree", fmt: str = "png") -> Optional[Path]:
        """Write the DOT source and, when Graphviz is installed, an image."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        graph = self.build(state)
        source_path = Path(graph.save(filename=f"{filename}.gv", directory=str(self.output_dir)))
        try:
            rendered = graph.render(filename=filename, directory=str(self.output_dir), format=fmt, cleanup=True)
        except graphviz.ExecutableNotFound:
            logger.error("Graphviz executable not found; only the DOT source was written to %s.", source_path)
            return source_path
        logger.info("Family tree saved as %s.", rendered)
        return Path(rendered)
