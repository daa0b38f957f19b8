"""
Emission factor tables.

All factors are kg CO2e per activity unit; the calculator divides by 1000 to
report metric tons (tCO2e).
"""

import enum
from typing import Dict


class CalculationType(str, enum.Enum):
    electricity = "electricity"
    vehicle = "vehicle"
    shipping = "shipping"
    supply_chain = "supply_chain"


class ElectricitySource(str, enum.Enum):
    grid = "grid"
    solar = "solar"
    wind = "wind"
    hybrid = "hybrid"


class VehicleClass(str, enum.Enum):
    bike = "bike"
    car = "car"
    suv = "suv"
    van = "van"
    truck = "truck"


class FuelType(str, enum.Enum):
    petrol = "petrol"
    diesel = "diesel"
    hybrid = "hybrid"
    electric = "electric"
    lpg = "lpg"
    cng = "cng"


class ShippingMode(str, enum.Enum):
    road = "road"
    rail = "rail"
    sea = "sea"
    air = "air"


class SupplyCategory(str, enum.Enum):
    manufacturing = "manufacturing"
    services = "services"
    materials = "materials"


# Accepted on input, stored under the canonical type
CALCULATION_TYPE_ALIASES: Dict[str, CalculationType] = {
    "supply": CalculationType.supply_chain,
}

# kg CO2e per kWh
ELECTRICITY_FACTORS: Dict[ElectricitySource, float] = {
    ElectricitySource.grid: 0.475,
    ElectricitySource.solar: 0.041,
    ElectricitySource.wind: 0.011,
    ElectricitySource.hybrid: 0.243,
}

# Charging an EV is costed at the grid factor (kg CO2e per kWh)
GRID_FACTOR = ELECTRICITY_FACTORS[ElectricitySource.grid]

# kg CO2 per litre of fuel burned (CNG is kg/kg, used as a litre equivalent)
FUEL_FACTORS: Dict[FuelType, float] = {
    FuelType.petrol: 2.31,
    FuelType.diesel: 2.68,
    FuelType.hybrid: 1.5,
    FuelType.lpg: 1.51,
    FuelType.cng: 2.75,
}

# kg CO2e per ton-km
SHIPPING_FACTORS: Dict[ShippingMode, float] = {
    ShippingMode.road: 0.062,
    ShippingMode.rail: 0.022,
    ShippingMode.sea: 0.008,
    ShippingMode.air: 0.602,
}

# kg CO2e per USD spent
SUPPLY_CHAIN_FACTORS: Dict[SupplyCategory, float] = {
    SupplyCategory.manufacturing: 0.45,
    SupplyCategory.services: 0.08,
    SupplyCategory.materials: 0.95,
}

# Suggested efficiency (L/100km, or kWh/100km for electric). UI pre-fill only.
DEFAULT_EFFICIENCIES: Dict[VehicleClass, Dict[FuelType, float]] = {
    VehicleClass.bike: {
        FuelType.petrol: 3.5, FuelType.diesel: 3.0, FuelType.hybrid: 2.5,
        FuelType.electric: 4.0, FuelType.lpg: 4.0, FuelType.cng: 3.5,
    },
    VehicleClass.car: {
        FuelType.petrol: 8.5, FuelType.diesel: 7.0, FuelType.hybrid: 5.0,
        FuelType.electric: 18.0, FuelType.lpg: 10.0, FuelType.cng: 9.0,
    },
    VehicleClass.suv: {
        FuelType.petrol: 11.0, FuelType.diesel: 9.5, FuelType.hybrid: 7.5,
        FuelType.electric: 22.0, FuelType.lpg: 13.0, FuelType.cng: 11.5,
    },
    VehicleClass.van: {
        FuelType.petrol: 12.0, FuelType.diesel: 10.0, FuelType.hybrid: 8.5,
        FuelType.electric: 26.0, FuelType.lpg: 14.0, FuelType.cng: 12.5,
    },
    VehicleClass.truck: {
        FuelType.petrol: 25.0, FuelType.diesel: 22.0, FuelType.hybrid: 20.0,
        FuelType.electric: 90.0, FuelType.lpg: 28.0, FuelType.cng: 24.0,
    },
}


def factor_tables() -> Dict[str, Dict]:
    """Every table keyed by plain strings, for API responses."""
    return {
        "electricity_kg_per_kwh": {k.value: v for k, v in ELECTRICITY_FACTORS.items()},
        "fuel_kg_per_litre": {k.value: v for k, v in FUEL_FACTORS.items()},
        "grid_kg_per_kwh_for_ev": GRID_FACTOR,
        "shipping_kg_per_ton_km": {k.value: v for k, v in SHIPPING_FACTORS.items()},
        "supply_chain_kg_per_usd": {k.value: v for k, v in SUPPLY_CHAIN_FACTORS.items()},
        "default_vehicle_efficiency": {
            vehicle_class.value: {fuel.value: value for fuel, value in by_fuel.items()}
            for vehicle_class, by_fuel in DEFAULT_EFFICIENCIES.items()
        },
    }
