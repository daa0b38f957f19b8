"""
Emission calculator.

Pure functions: raw activity inputs in, metric tons CO2e out. No I/O, no
clock, no randomness. Invalid input raises ``EmissionInputError`` before
anything is persisted.

    >>> electricity_emissions(5000, "grid")
    2.375
"""

import math
from enum import Enum
from typing import Type, TypeVar, Union

from aetherra.core.exceptions import EmissionInputError
from aetherra.schemas.calculation import (
    CalculationInputs,
    ElectricityInputs,
    ShippingInputs,
    SupplyChainInputs,
    VehicleInputs,
)
from aetherra.services.emission_factors import (
    CALCULATION_TYPE_ALIASES,
    DEFAULT_EFFICIENCIES,
    ELECTRICITY_FACTORS,
    FUEL_FACTORS,
    GRID_FACTOR,
    SHIPPING_FACTORS,
    SUPPLY_CHAIN_FACTORS,
    CalculationType,
    ElectricitySource,
    FuelType,
    ShippingMode,
    SupplyCategory,
    VehicleClass,
)

KG_PER_TON = 1000.0

E = TypeVar("E", bound=Enum)


def _coerce_enum(enum_cls: Type[E], value: Union[str, E], label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        supported = ", ".join(member.value for member in enum_cls)
        raise EmissionInputError(
            f"Unsupported {label} '{value}'. Supported values: {supported}"
        )


def _require_quantity(value: float, label: str) -> float:
    if value is None:
        raise EmissionInputError(f"Missing required field: {label}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EmissionInputError(f"{label} must be a number")
    if not math.isfinite(number):
        raise EmissionInputError(f"{label} must be a finite number")
    if number < 0:
        raise EmissionInputError(f"{label} cannot be negative")
    return number


def normalize_calculation_type(value: Union[str, CalculationType]) -> CalculationType:
    if isinstance(value, CalculationType):
        return value
    if value in CALCULATION_TYPE_ALIASES:
        return CALCULATION_TYPE_ALIASES[value]
    return _coerce_enum(CalculationType, value, "calculation type")


# ─────────────────────────────────────────────
# Per-activity formulas
# ─────────────────────────────────────────────
def electricity_emissions(kwh: float, source: Union[str, ElectricitySource]) -> float:
    kwh = _require_quantity(kwh, "kwh")
    factor = ELECTRICITY_FACTORS[_coerce_enum(ElectricitySource, source, "electricity source")]
    return kwh * factor / KG_PER_TON


def vehicle_emissions(
    vehicle_class: Union[str, VehicleClass],
    fuel: Union[str, FuelType],
    efficiency: float,
    distance_km: float,
) -> float:
    # Class does not change the formula, but it must still be a known value
    _coerce_enum(VehicleClass, vehicle_class, "vehicle class")
    fuel = _coerce_enum(FuelType, fuel, "fuel type")
    efficiency = _require_quantity(efficiency, "efficiency")
    distance_km = _require_quantity(distance_km, "distance_km")

    if fuel is FuelType.electric:
        factor = GRID_FACTOR
    else:
        factor = FUEL_FACTORS[fuel]
    return (distance_km / 100) * efficiency * factor / KG_PER_TON


def shipping_emissions(
    distance_km: float,
    weight_tons: float,
    mode: Union[str, ShippingMode],
    frequency_per_month: float = 1,
) -> float:
    distance_km = _require_quantity(distance_km, "distance_km")
    weight_tons = _require_quantity(weight_tons, "weight_tons")
    frequency_per_month = _require_quantity(frequency_per_month, "frequency_per_month")
    factor = SHIPPING_FACTORS[_coerce_enum(ShippingMode, mode, "shipping mode")]
    return distance_km * weight_tons * factor * frequency_per_month / KG_PER_TON


def supply_chain_emissions(spend_usd: float, category: Union[str, SupplyCategory]) -> float:
    spend_usd = _require_quantity(spend_usd, "spend_usd")
    factor = SUPPLY_CHAIN_FACTORS[_coerce_enum(SupplyCategory, category, "supply chain category")]
    return spend_usd * factor / KG_PER_TON


# ─────────────────────────────────────────────
# Dispatch over the tagged union
# ─────────────────────────────────────────────
def calculate_emissions(inputs: CalculationInputs) -> float:
    """Emissions in tCO2e for one activity record."""
    if isinstance(inputs, ElectricityInputs):
        return electricity_emissions(inputs.kwh, inputs.source)
    if isinstance(inputs, VehicleInputs):
        return vehicle_emissions(inputs.vehicle_class, inputs.fuel, inputs.efficiency, inputs.distance_km)
    if isinstance(inputs, ShippingInputs):
        return shipping_emissions(inputs.distance_km, inputs.weight_tons, inputs.mode, inputs.frequency_per_month)
    if isinstance(inputs, SupplyChainInputs):
        return supply_chain_emissions(inputs.spend_usd, inputs.category)
    raise EmissionInputError(f"Unsupported calculation inputs: {type(inputs).__name__}")


def default_efficiency(
    vehicle_class: Union[str, VehicleClass],
    fuel: Union[str, FuelType],
) -> float:
    """Suggested efficiency used to pre-fill the vehicle form."""
    vehicle_class = _coerce_enum(VehicleClass, vehicle_class, "vehicle class")
    fuel = _coerce_enum(FuelType, fuel, "fuel type")
    return DEFAULT_EFFICIENCIES[vehicle_class][fuel]


def efficiency_unit(fuel: Union[str, FuelType]) -> str:
    fuel = _coerce_enum(FuelType, fuel, "fuel type")
    return "kWh/100km" if fuel is FuelType.electric else "L/100km"
