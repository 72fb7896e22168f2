"""Unit tests for DocumentExpander.

This module tests expansion of parsed documents (no template files):
- Conditional chains in sequences and mappings
- Each loops over lists and mappings, in sequence and mapping position
- Insert directives, including repeated inserts in one mapping
- Forward visibility of variables
- Expression values: full expressions, interpolation, dropped UNDEFINED
- Step, pool and dependsOn normalization
- Multi-line block bookkeeping
"""

from __future__ import annotations

from typing import Any

from pipeline_studio.expansion.context import ExecutionContext
from pipeline_studio.expansion.expander import (
    DocumentExpander,
    iteration_key,
    normalize_collection,
)
from pipeline_studio.expressions.values import ExpressionBool
from pipeline_studio.serialization.loader import load_pipeline


def expand(
    text: str, context: ExecutionContext | None = None, **kwargs: Any
) -> tuple[Any, ExecutionContext]:
    context = context or ExecutionContext()
    document = load_pipeline(text)
    return DocumentExpander().expand(document, context, **kwargs), context


CHAIN = """
items:
  - ${{ if eq(parameters.env, 'prod') }}:
    - prod
  - ${{ elseif eq(parameters.env, 'test') }}:
    - test
  - ${{ else }}:
    - dev
  - always
"""


class TestSequenceConditionals:
    """Test conditional chains inside sequences."""

    def test_if_branch(self) -> None:
        result, _ = expand(CHAIN, ExecutionContext(parameters={"env": "prod"}))
        assert result == {"items": ["prod", "always"]}

    def test_elseif_branch(self) -> None:
        result, _ = expand(CHAIN, ExecutionContext(parameters={"env": "test"}))
        assert result == {"items": ["test", "always"]}

    def test_else_branch(self) -> None:
        result, _ = expand(CHAIN, ExecutionContext(parameters={"env": "qa"}))
        assert result == {"items": ["dev", "always"]}

    def test_exactly_one_branch_taken(self) -> None:
        """When several conditions hold only the first branch contributes."""
        text = """
items:
  - ${{ if true }}:
    - first
  - ${{ elseif true }}:
    - second
  - ${{ else }}:
    - third
"""
        result, _ = expand(text)
        assert result == {"items": ["first"]}

    def test_later_conditions_not_evaluated(self) -> None:
        """Conditions after the taken branch are never evaluated."""
        text = """
items:
  - ${{ if true }}:
    - first
  - ${{ elseif eq(counter('c', 0), 5) }}:
    - second
  - after: ${{ counter('c', 0) }}
"""
        result, _ = expand(text)
        assert result == {"items": ["first", {"after": 0}]}

    def test_no_branch_taken_without_else(self) -> None:
        text = """
items:
  - ${{ if false }}:
    - hidden
  - shown
"""
        result, _ = expand(text)
        assert result == {"items": ["shown"]}

    def test_mapping_body_in_sequence(self) -> None:
        """A mapping branch body contributes one item."""
        text = """
items:
  - ${{ if true }}:
      name: only
"""
        result, _ = expand(text)
        assert result == {"items": [{"name": "only"}]}


class TestMappingConditionals:
    """Test conditional chains inside mappings."""

    def test_branch_entries_are_merged(self) -> None:
        text = """
job:
  name: build
  ${{ if eq(parameters.debug, true) }}:
    configuration: Debug
  ${{ else }}:
    configuration: Release
  pool: default
"""
        result, _ = expand(text, ExecutionContext(parameters={"debug": True}))
        assert result == {
            "job": {
                "name": "build",
                "configuration": "Debug",
                "pool": {"name": "default"},
            }
        }

    def test_else_in_mapping(self) -> None:
        text = """
settings:
  ${{ if parameters.enabled }}:
    mode: on
  ${{ else }}:
    mode: off
"""
        result, _ = expand(text, ExecutionContext(parameters={"enabled": False}))
        assert result == {"settings": {"mode": "off"}}


class TestEachLoops:
    """Test each directives."""

    def test_each_over_list_binds_item_and_index(self) -> None:
        """Each over [1, 2, 3] yields three items with indexes 0..2."""
        text = """
items:
  - ${{ each x in parameters.values }}:
    - value: ${{ x }}
      index: ${{ xIndex }}
"""
        result, _ = expand(text, ExecutionContext(parameters={"values": [1, 2, 3]}))
        assert result == {
            "items": [
                {"value": 1, "index": 0},
                {"value": 2, "index": 1},
                {"value": 3, "index": 2},
            ]
        }

    def test_each_over_mapping_yields_key_value_pairs(self) -> None:
        text = """
items:
  - ${{ each pair in parameters.tags }}:
    - ${{ pair.key }}=${{ pair.value }}
"""
        context = ExecutionContext(parameters={"tags": {"team": "web", "tier": 2}})
        result, _ = expand(text, context)
        assert result == {"items": ["team=web", "tier=2"]}

    def test_each_over_missing_collection(self) -> None:
        text = """
items:
  - ${{ each x in parameters.missing }}:
    - ${{ x }}
  - last
"""
        result, _ = expand(text)
        assert result == {"items": ["last"]}

    def test_each_in_mapping_position(self) -> None:
        """Iterations merge their mappings into the parent mapping."""
        text = """
urls:
  ${{ each env in parameters.envs }}:
    ${{ env }}: https://${{ env }}.example.com
"""
        result, _ = expand(text, ExecutionContext(parameters={"envs": ["dev", "prod"]}))
        assert result == {
            "urls": {
                "dev": "https://dev.example.com",
                "prod": "https://prod.example.com",
            }
        }

    def test_iteration_key_from_item_name(self) -> None:
        """A `--` key is replaced by each item's name."""
        text = """
matrix:
  ${{ each e in parameters.envs }}:
    --:
      region: ${{ e.region }}
"""
        envs = [
            {"name": "dev", "region": "westeurope"},
            {"name": "prod", "region": "northeurope"},
        ]
        result, _ = expand(text, ExecutionContext(parameters={"envs": envs}))
        assert result == {
            "matrix": {
                "dev": {"region": "westeurope"},
                "prod": {"region": "northeurope"},
            }
        }

    def test_iteration_key_with_sibling_entries(self) -> None:
        """Other keys of the iteration body are merged alongside."""
        text = """
jobs:
  ${{ each target in parameters.targets }}:
    --: build-${{ target }}
    last: ${{ target }}
"""
        context = ExecutionContext(parameters={"targets": ["x64", "arm"]})
        result, _ = expand(text, context)
        assert result == {
            "jobs": {"x64": "build-x64", "arm": "build-arm", "last": "arm"}
        }

    def test_iteration_key_over_mapping_collection(self) -> None:
        """Mapping collections are keyed by their original keys."""
        text = """
out:
  ${{ each pair in parameters.tags }}:
    --: ${{ pair.value }}
"""
        context = ExecutionContext(parameters={"tags": {"team": "ci", "tier": 2}})
        result, _ = expand(text, context)
        assert result == {"out": {"team": "ci", "tier": 2}}

    def test_loop_variable_does_not_leak(self) -> None:
        text = """
items:
  - ${{ each x in parameters.values }}:
    - ${{ x }}
  - ${{ x }}
"""
        result, _ = expand(text, ExecutionContext(parameters={"values": ["a"]}))
        assert result == {"items": ["a"]}

    def test_nested_loops(self) -> None:
        text = """
items:
  - ${{ each os in parameters.os }}:
    - ${{ each arch in parameters.arch }}:
      - ${{ os }}-${{ arch }}
"""
        context = ExecutionContext(parameters={"os": ["linux", "win"], "arch": ["x64"]})
        result, _ = expand(text, context)
        assert result == {"items": ["linux-x64", "win-x64"]}


class TestInsert:
    """Test insert directives."""

    def test_insert_merges_mapping(self) -> None:
        text = """
job:
  name: build
  ${{ insert }}: ${{ parameters.extra }}
"""
        context = ExecutionContext(parameters={"extra": {"timeoutInMinutes": 10}})
        result, _ = expand(text, context)
        assert result == {"job": {"name": "build", "timeoutInMinutes": 10}}

    def test_repeated_inserts_both_merge(self) -> None:
        """Two insert keys in one mapping each contribute their entries."""
        text = """
job:
  ${{ insert }}: ${{ parameters.first }}
  ${{ insert }}: ${{ parameters.second }}
"""
        context = ExecutionContext(
            parameters={"first": {"a": 1}, "second": {"b": 2}}
        )
        result, _ = expand(text, context)
        assert result == {"job": {"a": 1, "b": 2}}

    def test_later_insert_overrides(self) -> None:
        text = """
job:
  ${{ insert }}:
    mode: one
  ${{ insert }}:
    mode: two
"""
        result, _ = expand(text)
        assert result == {"job": {"mode": "two"}}


class TestForwardVisibility:
    """Test that variables are visible to everything expanded after them."""

    def test_list_variables(self) -> None:
        """b refers to a declared just before it."""
        text = """
variables:
  - name: a
    value: 1
  - name: b
    value: ${{ variables.a }}
"""
        result, context = expand(text)
        assert result["variables"][1] == {"name": "b", "value": 1}
        assert context.variables["b"] == 1

    def test_mapping_variables(self) -> None:
        text = """
variables:
  a: 1
  b: ${{ variables.a }}
"""
        result, _ = expand(text)
        assert result == {"variables": {"a": 1, "b": 1}}

    def test_variables_visible_to_later_siblings(self) -> None:
        text = """
variables:
  configuration: Release
steps:
  - script: build --config ${{ variables.configuration }}
"""
        result, _ = expand(text)
        assert result["steps"][0]["inputs"]["script"] == "build --config Release"

    def test_variables_from_each_loop(self) -> None:
        text = """
variables:
  ${{ each env in parameters.envs }}:
    ${{ env }}_url: https://${{ env }}.example.com
  all: ${{ variables.dev_url }}
"""
        result, context = expand(text, ExecutionContext(parameters={"envs": ["dev"]}))
        assert result["variables"]["all"] == "https://dev.example.com"
        assert context.variables["dev_url"] == "https://dev.example.com"


class TestValues:
    """Test expression values inside the tree."""

    def test_full_expression_keeps_type(self) -> None:
        result, _ = expand("count: ${{ parameters.n }}", ExecutionContext(parameters={"n": 3}))
        assert result == {"count": 3}

    def test_full_expression_boolean(self) -> None:
        result, _ = expand("flag: ${{ eq(1, 1) }}")
        assert result["flag"] is ExpressionBool.TRUE

    def test_undefined_entries_are_dropped(self) -> None:
        text = """
job:
  name: build
  condition: ${{ parameters.missing }}
items:
  - ${{ parameters.missing }}
  - kept
"""
        result, _ = expand(text)
        assert result == {"job": {"name": "build"}, "items": ["kept"]}

    def test_list_value_is_spliced(self) -> None:
        text = """
items:
  - first
  - ${{ parameters.more }}
  - last
"""
        result, _ = expand(text, ExecutionContext(parameters={"more": ["a", "b"]}))
        assert result == {"items": ["first", "a", "b", "last"]}

    def test_object_value_is_copied(self) -> None:
        config = {"region": "westeurope"}
        result, _ = expand("config: ${{ parameters.config }}", ExecutionContext(parameters={"config": config}))
        assert result == {"config": config}
        assert result["config"] is not config

    def test_key_interpolation(self) -> None:
        result, _ = expand(
            "${{ parameters.name }}_job: x", ExecutionContext(parameters={"name": "deploy"})
        )
        assert result == {"deploy_job": "x"}

    def test_unresolved_parameter_in_text(self) -> None:
        result, _ = expand("message: build ${{ parameters.buildId }}")
        assert result == {"message": "build $(buildId)"}

    def test_runtime_variables_are_untouched(self) -> None:
        result, _ = expand("message: $(Build.BuildId) and $[variables.x]")
        assert result == {"message": "$(Build.BuildId) and $[variables.x]"}


class TestNormalization:
    """Test normalization applied while expanding."""

    def test_bash_step(self) -> None:
        text = """
steps:
  - bash: make test
    displayName: Test
    workingDirectory: src
"""
        result, _ = expand(text)
        assert result["steps"] == [
            {
                "task": "Bash@3",
                "inputs": {
                    "targetType": "inline",
                    "script": "make test",
                    "workingDirectory": "src",
                },
                "displayName": "Test",
            }
        ]

    def test_pool_and_depends_on(self) -> None:
        text = """
jobs:
  - job: B
    dependsOn: A
    pool: linux-agents
"""
        result, _ = expand(text)
        assert result["jobs"][0]["dependsOn"] == ["A"]
        assert result["jobs"][0]["pool"] == {"name": "linux-agents"}

    def test_parameters_block_not_normalized(self) -> None:
        text = """
parameters:
  - name: pool
    default: linux-agents
"""
        result, _ = expand(text)
        assert result == {"parameters": [{"name": "pool", "default": "linux-agents"}]}

    def test_preserving_mode_skips_normalization(self) -> None:
        result, _ = expand("steps:\n  - bash: echo hi\n", resolve_templates=False)
        assert result == {"steps": [{"bash": "echo hi"}]}


class TestMultilineBlocks:
    """Test bookkeeping of multi-line values holding expressions."""

    def test_block_recorded(self) -> None:
        text = """
run: |
  echo start
  echo ${{ parameters.msg }}
"""
        result, context = expand(text, ExecutionContext(parameters={"msg": "hi"}))
        assert result == {"run": "echo start\necho hi\n"}
        assert "echo start\necho hi" in context.multiline_expression_blocks
        assert "echo start\necho hi" in context.multiline_last_line_blocks

    def test_expression_not_on_last_line(self) -> None:
        text = """
run: |
  echo ${{ parameters.msg }}
  echo end
"""
        _, context = expand(text, ExecutionContext(parameters={"msg": "hi"}))
        assert "echo hi\necho end" in context.multiline_expression_blocks
        assert not context.multiline_last_line_blocks

    def test_block_without_expression_not_recorded(self) -> None:
        _, context = expand("run: |\n  a\n  b\n")
        assert not context.multiline_expression_blocks


class TestNormalizeCollection:
    """Test normalize_collection()."""

    def test_list_passes_through(self) -> None:
        items = [1, 2]
        assert normalize_collection(items) is items

    def test_mapping_becomes_pairs(self) -> None:
        assert normalize_collection({"a": 1}) == [{"key": "a", "value": 1}]

    def test_scalar_is_empty(self) -> None:
        assert normalize_collection("abc") == []


class TestIterationKey:
    """Test iteration_key()."""

    def test_scalar_item_is_the_key(self) -> None:
        assert iteration_key("linux", 0) == "linux"
        assert iteration_key(3, 0) == "3"
        assert iteration_key(True, 0) == "true"

    def test_field_priority(self) -> None:
        """`key` wins over `name`, which wins over `value`."""
        assert iteration_key({"name": "b", "key": "a"}, 0) == "a"
        assert iteration_key({"value": "v", "name": "n"}, 0) == "n"
        assert iteration_key({"id": 7}, 0) == "7"

    def test_non_scalar_fields_are_skipped(self) -> None:
        assert iteration_key({"name": ["x"], "label": "lbl"}, 0) == "lbl"

    def test_falls_back_to_index(self) -> None:
        assert iteration_key(None, 2) == "2"
        assert iteration_key({"region": "west"}, 1) == "1"
        assert iteration_key(["a", "b"], 4) == "4"
