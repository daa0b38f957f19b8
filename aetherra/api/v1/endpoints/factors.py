from fastapi import APIRouter, Query

from aetherra.schemas.calculation import VehicleDefaultOut
from aetherra.services.calculator import default_efficiency, efficiency_unit
from aetherra.services.emission_factors import FuelType, VehicleClass, factor_tables

router = APIRouter()


# ─────────────────────────────────────────────
# 📚 Emission factor tables
# ─────────────────────────────────────────────
@router.get("/")
async def get_factor_tables():
    return factor_tables()


# ─────────────────────────────────────────────
# 🚗 Suggested efficiency for the vehicle form
# ─────────────────────────────────────────────
@router.get("/vehicle-default", response_model=VehicleDefaultOut)
async def get_vehicle_default(
    vehicle_class: VehicleClass = Query(..., examples=["car"]),
    fuel: FuelType = Query(..., examples=["petrol"]),
):
    return VehicleDefaultOut(
        vehicle_class=vehicle_class,
        fuel=fuel,
        efficiency=default_efficiency(vehicle_class, fuel),
        unit=efficiency_unit(fuel),
    )
