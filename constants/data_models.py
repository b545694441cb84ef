# constants/data_models.py

# Order statuses as the UI knows them after normalization
ORDER_STATUSES = ["processing", "shipped", "completed", "canceled"]

ORDER_STATUS_ALIASES = {
    "created": "processing",
    "create": "processing",
    "backorder": "processing",
    "fulfilled": "completed",
    "cancelled": "canceled",
    "cancel": "canceled",
}

# Allocation sources returned with a processing order
ALLOCATION_SOURCES = ["primary", "on_water", "on_process", "second"]

# On-process row and batch statuses
ON_PROCESS_ROW_STATUSES = ["in_progress", "partial", "completed", "cancelled"]
ON_PROCESS_BATCH_STATUSES = ["in-progress", "partial-done", "completed"]

# Shipment lifecycle
SHIPMENT_STATUSES = ["on_water", "delivered", "transferred"]
SHIPMENT_LOCKED_STATUSES = ["delivered", "transferred"]

TRANSFER_MODES = ["delivered", "on_water"]
IMPORT_STATUSES = ["Delivered", "On-Water"]

USER_ROLES = ["admin", "user"]

# Spreadsheet templates (header rows must match exactly, case-insensitive)
TRANSFER_TEMPLATE_COLUMNS = ["Pallet Description", "Total Pallet"]
TRANSFER_TEMPLATE_SAMPLE = [["Inverted Planters Mixed Smooth and VA (OW / MB / C / DAB)", 1]]
TRANSFER_TEMPLATE_FILENAME = "transfer_pallet_template.xlsx"

ON_PROCESS_TEMPLATE_COLUMNS = ["PO #", "Pallet Description", "Total Pallet"]
ON_PROCESS_TEMPLATE_FILENAME = "on_process_pallet_template.xlsx"

PALLET_IMPORT_TEMPLATE_COLUMNS = ["PO #", "Pallet Description", "Total Pallet"]
PALLET_IMPORT_TEMPLATE_FILENAME = "pallet_import_template.xlsx"

STOCK_IMPORT_TEMPLATE_COLUMNS = ["PO #", "Item Code", "Total Qty", "Pack Size"]
STOCK_IMPORT_TEMPLATE_FILENAME = "import_stock_template.xlsx"

REGISTRY_COLUMNS = [
    "Pallet Description",
    "Pallet ID",
    "Item Code",
    "Item Description",
    "Color",
    "Pack Size",
]
REGISTRY_TEMPLATE_SAMPLE = [
    [
        "Inverted Planters Smooth (OW)",
        "Tall + Short Rounded Bottom Planters Pallet - Volcanic Ash Brown/Cement",
        "PC2014AFBR-OW",
        "Smooth Finish Inverted Planter S - Oyster White - Fiber Finish",
        "Oyster White",
        8,
    ],
    [
        "Inverted Planters Mixed Smooth and VA (OW / MB / C / DAB)",
        '32" Beaded Commercial Planter - Cement',
        "MPC2032D-DAB",
        "Volcanic Ash Texture Inverted Planter S - Dark Antique Bronze",
        "Dark Antique Bronze",
        2,
    ],
]

WAREHOUSE_EXPORT_COLUMNS = ["Pallet Description", "Total Pallet"]
SHIPMENT_EXPORT_COLUMNS = ["Pallet Description", "Pallet Qty"]

# Lead times used by the ship date hints
SECOND_WAREHOUSE_LEAD_MONTHS = 3
ON_PROCESS_LEAD_MONTHS = 3
TRANSFER_DEFAULT_EDD_MONTHS = 3
ON_PROCESS_DEFAULT_FINISH_MONTHS = 2

# Polling intervals (seconds)
BADGE_POLL_SECONDS = 15
ORDERS_POLL_SECONDS = 20
ORDER_EDIT_POLL_SECONDS = 15
SHIPDATE_AUTOSAVE_THROTTLE_SECONDS = 5
