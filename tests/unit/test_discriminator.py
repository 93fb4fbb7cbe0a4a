"""Unit tests for discriminator resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from row_graph.adapters.memory import MemoryCursor
from row_graph.core.converters import ConverterRegistry
from row_graph.mapping.builder import plan_for
from row_graph.mapping.discriminator import resolve_discriminated_plan
from row_graph.mapping.registry import PlanRegistry
from row_graph.mapping.result_set import ResultSetWrapper


@dataclass
class Vehicle:
    id: int | None = None
    kind: str | None = None


@dataclass
class Car(Vehicle):
    doors: int | None = None


@dataclass
class Truck(Vehicle):
    payload: float | None = None


@dataclass
class SportsCar(Car):
    top_speed: int | None = None


def _wrapper(row: dict[str, Any]) -> ResultSetWrapper:
    rsw = ResultSetWrapper(MemoryCursor([row]), ConverterRegistry())
    rsw.next()
    return rsw


def _vehicle_plans() -> list:
    return [
        plan_for(Vehicle)
        .id("id")
        .result("kind")
        .discriminator("kind", {"car": "Car", "truck": "Truck"})
        .build(),
        plan_for(Car)
        .id("id")
        .result("kind")
        .result("doors")
        .discriminator("sporty", {1: "SportsCar"})
        .build(),
        plan_for(Truck).id("id").result("kind").result("payload").build(),
        plan_for(SportsCar).id("id").result("kind").result("doors").result("top_speed").build(),
    ]


class TestResolveDiscriminatedPlan:
    def test_selects_case_plan(self) -> None:
        plans = PlanRegistry(_vehicle_plans())
        rsw = _wrapper({"id": 1, "kind": "truck", "sporty": 0, "payload": 2.5})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), None)

        assert resolved.plan_id == "Truck"

    def test_follows_chain_to_deepest_plan(self) -> None:
        plans = PlanRegistry(_vehicle_plans())
        rsw = _wrapper({"id": 1, "kind": "car", "sporty": 1})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), None)

        assert resolved.plan_id == "SportsCar"

    def test_unknown_value_keeps_current_plan(self) -> None:
        plans = PlanRegistry(_vehicle_plans())
        rsw = _wrapper({"id": 1, "kind": "boat", "sporty": 0})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), None)

        assert resolved.plan_id == "Vehicle"

    def test_unknown_target_plan_keeps_current_plan(self) -> None:
        plans = PlanRegistry(
            [plan_for(Vehicle).id("id").discriminator("kind", {"car": "Missing"}).build()]
        )
        rsw = _wrapper({"id": 1, "kind": "car"})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), None)

        assert resolved.plan_id == "Vehicle"

    def test_self_loop_terminates(self) -> None:
        plans = PlanRegistry(
            [plan_for(Vehicle).id("id").discriminator("kind", {"car": "Vehicle"}).build()]
        )
        rsw = _wrapper({"id": 1, "kind": "car"})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), None)

        assert resolved.plan_id == "Vehicle"

    def test_cycle_terminates(self) -> None:
        plans = PlanRegistry(
            [
                plan_for(Vehicle, "A").id("id").discriminator("kind", {"x": "B"}).build(),
                plan_for(Vehicle, "B").id("id").discriminator("kind", {"x": "A"}).build(),
            ]
        )
        rsw = _wrapper({"id": 1, "kind": "x"})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("A"), None)

        assert resolved.plan_id == "B"

    def test_prefixed_tag_column(self) -> None:
        plans = PlanRegistry(_vehicle_plans())
        rsw = _wrapper({"v_id": 1, "v_kind": "truck"})

        resolved = resolve_discriminated_plan(plans, rsw, plans.get("Vehicle"), "v_")

        assert resolved.plan_id == "Truck"


class TestDiscriminatedMaterialization:
    def test_rows_become_subtypes(self, make_materializer: Any, statement: Any) -> None:
        materializer = make_materializer(_vehicle_plans())
        rows = [
            {"id": 1, "kind": "car", "doors": 4, "payload": None, "sporty": 0},
            {"id": 2, "kind": "truck", "doors": None, "payload": 12.5, "sporty": 0},
            {"id": 3, "kind": "car", "doors": 2, "payload": None, "sporty": 1},
        ]

        vehicles = materializer.fetch_all(statement("Vehicle"), [MemoryCursor(rows)])

        assert [type(v) for v in vehicles] == [Car, Truck, SportsCar]
        assert vehicles[0].doors == 4
        assert vehicles[1].payload == 12.5
