from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Literal, Optional, Union
from typing_extensions import Annotated
from datetime import datetime

from aetherra.services.emission_factors import (
    CalculationType,
    ElectricitySource,
    FuelType,
    ShippingMode,
    SupplyCategory,
    VehicleClass,
)


# ─────────────────────────────────────────────
# ⚡ Activity inputs, one variant per calculation type
# ─────────────────────────────────────────────
class ElectricityInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["electricity"] = "electricity"
    kwh: float = Field(..., ge=0, allow_inf_nan=False, examples=[5000])
    source: ElectricitySource = Field(ElectricitySource.grid, examples=["grid"])


class VehicleInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["vehicle"] = "vehicle"
    vehicle_class: VehicleClass = Field(..., examples=["car"])
    fuel: FuelType = Field(..., examples=["petrol"])
    efficiency: float = Field(..., ge=0, allow_inf_nan=False, description="L/100km, or kWh/100km for electric", examples=[8.5])
    distance_km: float = Field(..., ge=0, allow_inf_nan=False, examples=[15000])


class ShippingInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["shipping"] = "shipping"
    distance_km: float = Field(..., ge=0, allow_inf_nan=False, examples=[500])
    weight_tons: float = Field(..., ge=0, allow_inf_nan=False, examples=[2.5])
    mode: ShippingMode = Field(..., examples=["air"])
    frequency_per_month: float = Field(1, ge=0, allow_inf_nan=False, examples=[1])


class SupplyChainInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["supply_chain", "supply"] = "supply_chain"
    spend_usd: float = Field(..., ge=0, allow_inf_nan=False, examples=[25000])
    category: SupplyCategory = Field(..., examples=["manufacturing"])

    @field_validator("type")
    @classmethod
    def normalize_legacy_type(cls, value: str) -> str:
        return CalculationType.supply_chain.value


CalculationInputs = Annotated[
    Union[ElectricityInputs, VehicleInputs, ShippingInputs, SupplyChainInputs],
    Field(discriminator="type"),
]


# ─────────────────────────────────────────────
# ✅ Create / Preview
# ─────────────────────────────────────────────
class CalculationCreate(BaseModel):
    inputs: CalculationInputs


# ─────────────────────────────────────────────
# ✏️ Explicit edit (inputs replaced, emissions recomputed)
# ─────────────────────────────────────────────
class CalculationUpdate(BaseModel):
    inputs: CalculationInputs


# ─────────────────────────────────────────────
# 📤 Response Schemas
# ─────────────────────────────────────────────
class CalculationPreview(BaseModel):
    type: CalculationType
    emissions: float = Field(..., description="tCO2e")


class CalculationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: CalculationType
    inputs: Dict[str, Any]
    emissions: float
    created_at: datetime
    updated_at: Optional[datetime] = None


class CategoryTotal(BaseModel):
    type: CalculationType
    emissions: float
    count: int


class VehicleDefaultOut(BaseModel):
    vehicle_class: VehicleClass
    fuel: FuelType
    efficiency: float
    unit: str
