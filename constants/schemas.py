from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def ref_id(value: Any) -> str:
    """Return the id of a reference that may arrive as a plain id or a populated document."""
    if not value:
        return ""
    if isinstance(value, dict):
        maybe = value.get("_id") or value.get("id")
        return str(maybe) if maybe else ""
    return str(value)


def ref_name(value: Any, names_by_id: Optional[Dict[str, str]] = None) -> str:
    """Resolve a warehouse (or other) reference to a display name."""
    if isinstance(value, dict) and value.get("name"):
        return str(value["name"])
    return (names_by_id or {}).get(ref_id(value), "")


# --- Data Models Based on the REST payloads consumed by the pages ---


class Warehouse(BaseModel):
    """A physical warehouse; the primary one is the default transfer destination"""

    id: str = Field(alias="_id", default="")
    name: str = ""
    address: Optional[str] = ""
    is_primary: Optional[bool] = Field(alias="isPrimary", default=False)

    class Config:
        populate_by_name = True


class ItemGroup(BaseModel):
    """A Pallet Description, with its optional external Pallet ID"""

    id: str = Field(alias="_id", default="")
    name: str
    line_item: Optional[str] = Field(alias="lineItem", default="")
    active: Optional[bool] = True

    class Config:
        populate_by_name = True


class Item(BaseModel):
    """A registered item code belonging to one Pallet Description"""

    id: str = Field(alias="_id", default="")
    item_code: str = Field(alias="itemCode")
    item_group: Optional[str] = Field(alias="itemGroup", default="")
    description: Optional[str] = ""
    color: Optional[str] = ""
    pack_size: Optional[float] = Field(alias="packSize", default=0)
    enabled: Optional[bool] = True
    total_qty: Optional[float] = Field(alias="totalQty", default=0)
    low_stock_threshold: Optional[float] = Field(alias="lowStockThreshold", default=0)

    class Config:
        populate_by_name = True


class WarehousePallets(BaseModel):
    warehouse_id: Any = Field(alias="warehouseId", default="")
    pallets: Optional[float] = 0

    class Config:
        populate_by_name = True


class PalletGroupStock(BaseModel):
    """Pallet count of one Pallet Description across warehouses"""

    group_name: str = Field(alias="groupName")
    per_warehouse: List[WarehousePallets] = Field(alias="perWarehouse", default_factory=list)
    total_pallets: Optional[float] = Field(alias="totalPallets", default=0)

    class Config:
        populate_by_name = True

    def pallets_in(self, warehouse_id: str) -> float:
        for rec in self.per_warehouse:
            if ref_id(rec.warehouse_id) == str(warehouse_id):
                return float(rec.pallets or 0)
        return 0.0


class MovementItem(BaseModel):
    item_code: str = Field(alias="itemCode", default="")
    qty_pieces: Optional[float] = Field(alias="qtyPieces", default=0)
    pack_size: Optional[float] = Field(alias="packSize", default=0)
    pallet_id: Optional[str] = Field(alias="palletId", default="")

    class Config:
        populate_by_name = True


class Transaction(BaseModel):
    """Append-only stock movement record"""

    id: str = Field(alias="_id", default="")
    type: str = ""
    reference: Optional[str] = ""
    items: List[MovementItem] = Field(default_factory=list)
    created_at: Optional[str] = Field(alias="createdAt", default="")
    notes: Optional[str] = ""

    class Config:
        populate_by_name = True


class Shipment(BaseModel):
    """Inbound (import) or inter-warehouse (transfer) shipment"""

    id: str = Field(alias="_id", default="")
    kind: str = ""
    status: str = ""
    reference: Optional[str] = ""
    warehouse_id: Any = Field(alias="warehouseId", default="")
    source_warehouse_id: Any = Field(alias="sourceWarehouseId", default="")
    items: List[MovementItem] = Field(default_factory=list)
    notes: Optional[str] = ""
    est_delivery_date: Optional[str] = Field(alias="estDeliveryDate", default="")
    delivered_at: Optional[str] = Field(alias="deliveredAt", default="")

    class Config:
        populate_by_name = True


class OnProcessBatch(BaseModel):
    """A production run grouping on-process pallets under one PO"""

    id: str = Field(alias="_id", default="")
    reference: Optional[str] = ""
    po_number: Optional[str] = Field(alias="poNumber", default="")
    status: str = "in-progress"
    est_finish_date: Optional[str] = Field(alias="estFinishDate", default="")
    notes: Optional[str] = ""
    item_count: Optional[int] = Field(alias="itemCount", default=0)
    created_at: Optional[str] = Field(alias="createdAt", default="")

    class Config:
        populate_by_name = True


class OnProcessPallet(BaseModel):
    """Per-group pallet target inside an on-process batch"""

    id: Optional[str] = Field(alias="_id", default="")
    po_number: Optional[str] = Field(alias="poNumber", default="")
    group_name: str = Field(alias="groupName")
    total_pallet: Optional[float] = Field(alias="totalPallet", default=0)
    finished_pallet: Optional[float] = Field(alias="finishedPallet", default=0)
    transferred_pallet: Optional[float] = Field(alias="transferredPallet", default=0)
    status: Optional[str] = "in_progress"
    locked: Optional[bool] = False
    notes: Optional[str] = ""

    class Config:
        populate_by_name = True


class PickerRow(BaseModel):
    """One Pallet Description in the order pallet picker"""

    line_item: Optional[str] = Field(alias="lineItem", default="")
    group_name: str = Field(alias="groupName", default="")
    selected_warehouse_available: Optional[float] = Field(alias="selectedWarehouseAvailable", default=0)
    on_water_pallets: Optional[float] = Field(alias="onWaterPallets", default=0)
    on_water_edd: Optional[str] = Field(alias="onWaterEdd", default="")
    on_process_pallets: Optional[float] = Field(alias="onProcessPallets", default=0)
    on_process_edd: Optional[str] = Field(alias="onProcessEdd", default="")
    per_warehouse: Dict[str, Optional[float]] = Field(alias="perWarehouse", default_factory=dict)

    class Config:
        populate_by_name = True


class Allocation(BaseModel):
    group_name: str = Field(alias="groupName", default="")
    source: str = ""
    qty: Optional[float] = 0
    warehouse_id: Any = Field(alias="warehouseId", default="")

    class Config:
        populate_by_name = True


class OrderRow(BaseModel):
    """A row of the merged orders list (manual and CSV-imported orders)"""

    id: str
    raw_id: str = ""
    order_number: str = ""
    type: Literal["manual", "import"] = "manual"
    status: str = ""
    warehouse_id: str = ""
    warehouse_name: str = ""
    created_at: str = ""
    email: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    shipping_address: str = ""
    created_at_order: str = ""
    est_fulfillment_date: str = ""
    lines: List[Dict[str, Any]] = Field(default_factory=list)
    allocations: List[Dict[str, Any]] = Field(default_factory=list)
    source: str = ""
    line_count: int = 0
    total_qty: float = 0


class User(BaseModel):
    id: str = Field(alias="_id", default="")
    username: str
    role: str = "user"
    enabled: Optional[bool] = True
    created_at: Optional[str] = Field(alias="createdAt", default="")

    class Config:
        populate_by_name = True


class RowError(BaseModel):
    row_num: Any = Field(alias="rowNum", default="-")
    errors: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ImportReport(BaseModel):
    """Preview/commit summary returned by the bulk import endpoints"""

    total_rows: Optional[int] = Field(alias="totalRows", default=0)
    order_count: Optional[int] = Field(alias="orderCount", default=0)
    error_count: Optional[int] = Field(alias="errorCount", default=0)
    duplicate_count: Optional[int] = Field(alias="duplicateCount", default=0)
    created: Optional[int] = 0
    committed_orders: Optional[int] = Field(alias="committedOrders", default=0)
    errors: List[RowError] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ManualOrderForm(BaseModel):
    """Fields of the add/edit manual order dialog"""

    warehouse_id: str = ""
    status: str = "processing"
    customer_email: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    created_at_order: str = ""
    est_fulfillment_date: str = ""
    shipping_address: str = ""
    qty_by_group: Dict[str, Any] = Field(default_factory=dict)
