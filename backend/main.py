from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

load_dotenv()
from fastapi.middleware.cors import CORSMiddleware
from database import Base, engine
from datetime import datetime
from exceptions import LedgerError
import models  # noqa: F401  registers every table on Base.metadata
import routers.account_movements as account_movements
import routers.accounts as accounts
import routers.app_config as app_config
import routers.audit_logs as audit_logs
import routers.business_partners as business_partners
import routers.credit_debit_notes as credit_debit_notes
import routers.customer_returns as customer_returns
import routers.employees as employees
import routers.expenses as expenses
import routers.inventory as inventory
import routers.item_adjusts as item_adjusts
import routers.item_transfers as item_transfers
import routers.items as items
import routers.payments as payments
import routers.price_lists as price_lists
import routers.purchase_returns as purchase_returns
import routers.purchases as purchases
import routers.reports as reports
import routers.sales as sales
import routers.warehouses as warehouses
import os
import logging
from fastapi.openapi.utils import get_openapi


LOG_DIR = os.getenv("LOG_DIR", "logs")
os.makedirs(LOG_DIR, exist_ok=True)

# Create a unique log file name based on current date/time
current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
LOG_FILE = os.path.join(LOG_DIR, f"app_{current_time_str}.log")

# Configure the root logger
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=LOG_FILE,
    filemode='a'
)

# Also log to the console
console_handler = logging.StreamHandler()
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logging.getLogger().addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info("Application starting up...")
# --- End Logging Configuration ---


# Create database tables
Base.metadata.create_all(bind=engine)


app = FastAPI()


allowed_origins_str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173"
)

# Split the string into a list, stripping any whitespace
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(',')]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        # drop the leading "body"/"query" segment
        loc = [str(part) for part in error["loc"][1:]] or [str(part) for part in error["loc"]]
        errors.setdefault(".".join(loc), []).append(error["msg"])
    return JSONResponse(status_code=422, content={"message": "The given data was invalid.", "errors": errors})


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Back Office API",
        version="1.0.0",
        description="Inventory, sales and accounting API for multi-tenant back offices",
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    # Apply security globally to all endpoints
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


app.include_router(warehouses.router)
app.include_router(items.router)
app.include_router(inventory.router)
app.include_router(business_partners.router)
app.include_router(price_lists.router)
app.include_router(purchases.router)
app.include_router(purchase_returns.router)
app.include_router(sales.router)
app.include_router(customer_returns.router)
app.include_router(item_adjusts.router)
app.include_router(item_transfers.router)
app.include_router(payments.router)
app.include_router(credit_debit_notes.router)
app.include_router(account_movements.router)
app.include_router(accounts.router)
app.include_router(expenses.router)
app.include_router(employees.router)
app.include_router(reports.router)
app.include_router(app_config.router)
app.include_router(audit_logs.router)


@app.on_event("startup")
def start_scheduler():
    if os.getenv("ENABLE_SCHEDULER", "false").lower() in ("1", "true", "yes"):
        from scheduler import scheduler
        scheduler.start()
        logger.info("Capital snapshot scheduler started")


@app.on_event("shutdown")
def stop_scheduler():
    from scheduler import scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@app.get("/")
async def test_route():
    return {"message": "Welcome to the FastAPI application!"}
