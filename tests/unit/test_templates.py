"""Tests for the built-in formulation templates."""

from __future__ import annotations

import pytest

from formulate.core.ir import ConnectionStyle, FormulationLayout
from formulate.core.loader import compile_schema
from formulate.core.templates import FORMULATION_TEMPLATES, get_template, list_templates
from formulate.core.topology import validate_graph


class TestTemplates:
    """Tests for template lookup and conformance."""

    @pytest.mark.parametrize("template", FORMULATION_TEMPLATES, ids=lambda t: t.id)
    def test_template_conforms_to_layout(self, template) -> None:
        field = template.build("formulation")
        assert validate_graph(field.layout, field.nodes, field.connections) == []

    def test_template_ids_unique(self) -> None:
        ids = [t.id for t in FORMULATION_TEMPLATES]
        assert len(ids) == len(set(ids))

    def test_every_layout_covered(self) -> None:
        assert {t.layout for t in FORMULATION_TEMPLATES} == set(FormulationLayout)

    def test_list_by_layout(self) -> None:
        cross = list_templates("cross_sectional")
        assert {t.id for t in cross} == {"tpl-five-areas", "tpl-health-anxiety"}
        assert len(list_templates()) == len(FORMULATION_TEMPLATES)

    def test_list_unknown_layout(self) -> None:
        with pytest.raises(ValueError):
            list_templates("spiral")

    def test_get_unknown_template(self) -> None:
        with pytest.raises(KeyError):
            get_template("tpl-missing")

    def test_maintains_edge(self) -> None:
        edges = get_template("tpl-health-anxiety").connections()
        dashed = [e for e in edges if e.label == "maintains"]
        assert len(dashed) == 1
        assert (dashed[0].source, dashed[0].target) == ("safety", "trigger")
        assert dashed[0].style == ConnectionStyle.ARROW_DASHED

    def test_build_uses_template_name(self) -> None:
        field = get_template("tpl-vicious-flower").build("flower")
        assert field.id == "flower"
        assert field.label == "Vicious Flower"
        assert [n.slot for n in field.nodes][:2] == ["centre", "petal-0"]
        assert field.nodes[0].fields[0].id == "text"

    def test_built_field_compiles(self) -> None:
        field = get_template("tpl-panic-cycle").build("panic", label="Panic cycle")
        document = {
            "version": 1,
            "sections": [{"id": "main", "fields": [field.model_dump(by_alias=True)]}],
        }
        compiled = compile_schema(document)
        assert compiled.get_field("panic").label == "Panic cycle"
