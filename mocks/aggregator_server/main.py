from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Aggregator Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/aggregator_stub") if os.path.exists("/aggregator_stub") else Path(__file__).resolve().parents[1] / "aggregator_stub"

# Users unlinked through /disconnect
DISCONNECTED = set()


class StubbedItemError(Exception):
    def __init__(self, error_code: str):
        self.error_code = error_code


@app.exception_handler(StubbedItemError)
def item_error_handler(request: Request, exc: StubbedItemError):
    return JSONResponse(status_code=400, content={"error_code": exc.error_code, "error_message": "stubbed item error"})


def load_user(user_id: str) -> dict:
    file = DATA_DIR / f"{user_id}.json"
    if not file.exists():
        raise HTTPException(status_code=404, detail="user not found")
    data = json.loads(file.read_text())
    if data.get("error_code"):
        raise StubbedItemError(data["error_code"])
    return data


@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/users/{user_id}/status")
def get_status(user_id: str):
    data = load_user(user_id)
    return {"connected": user_id not in DISCONNECTED and data.get("connected", False)}

@app.get("/users/{user_id}/accounts")
def get_accounts(user_id: str):
    return {"accounts": load_user(user_id).get("accounts", [])}

@app.get("/users/{user_id}/transactions")
def get_transactions(user_id: str, start_date: str, end_date: str):
    # ISO dates order correctly as strings
    rows = [t for t in load_user(user_id).get("transactions", []) if start_date <= t["date"] <= end_date]
    return {"transactions": rows}

@app.post("/users/{user_id}/disconnect", status_code=204)
def disconnect(user_id: str):
    load_user(user_id)
    DISCONNECTED.add(user_id)
