import uuid
from datetime import date, datetime
from decimal import Decimal

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel

from centsei.budget_score import BudgetScore, calculate_score, record_score
from centsei.bundle import (
    InvalidBundleError,
    decode_share_token,
    encode_share_token,
    export_bundle,
    load_bundle,
)
from centsei.dates import (
    format_date,
    month_end,
    month_start,
    parse_month,
    shift_month,
    week_start,
)
from centsei.entries import (
    BILL_CATEGORIES,
    EntryInstance,
    MasterEntry,
    OccurrenceException,
    normalize_entry_type,
    normalize_recurrence,
)
from centsei.exception_overlay import set_occurrence_paid
from centsei.logger import setup_logging
from centsei.materializer import materialize, sort_instances
from centsei.monthly_summary import category_breakdown, summarize
from centsei.reminders import due_reminders, resolve_timezone
from centsei.reorder import (
    EntryNotFoundError,
    delete_instances,
    mark_instances_paid,
    order_between,
    reorder,
)
from centsei.settings import load_settings
from centsei.storage import (
    ENTRIES_KEY,
    ROLLOVER_KEY,
    SCORE_HISTORY_KEY,
    TIMEZONE_KEY,
    WEEKLY_BALANCES_KEY,
    KeyValueStore,
    create_store_engine,
)
from centsei.weekly_balances import (
    aggregate,
    balances_to_dict,
    normalize_rollover,
    weekly_totals,
)

settings = load_settings()
setup_logging(settings)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = KeyValueStore(create_store_engine(settings.database_url))


@app.on_event("startup")
def init_db() -> None:
    store.init_schema()


def get_store() -> KeyValueStore:
    return store


class ExceptionPayload(BaseModel):
    is_paid: bool | None = None
    moved_to: date | None = None
    order: float | None = None


class EntryPayload(BaseModel):
    id: str | None = None
    date: date
    name: str
    amount: Decimal
    type: str
    recurrence: str | None = "none"
    category: str | None = None
    is_paid: bool = False
    is_auto_pay: bool = False
    order: float | None = None
    exceptions: dict[str, ExceptionPayload] = {}

    @classmethod
    def validate_payload(cls, payload: "EntryPayload") -> "EntryPayload":
        if payload.amount < 0:
            raise ValueError("Entry amount must not be negative.")
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Entry name is required.")
        payload.type = normalize_entry_type(payload.type)
        payload.recurrence = normalize_recurrence(payload.recurrence)
        if payload.category is not None:
            payload.category = payload.category.strip().lower() or None
        if payload.category is not None and payload.category not in BILL_CATEGORIES:
            raise ValueError(f"Unknown category: {payload.category}")
        return payload

    def to_entry(self, entry_id: str) -> MasterEntry:
        return MasterEntry(
            id=entry_id,
            date=self.date,
            name=self.name,
            amount=self.amount,
            type=self.type,
            recurrence=self.recurrence,
            category=self.category,
            is_paid=self.is_paid,
            is_auto_pay=self.is_auto_pay,
            order=self.order,
            exceptions={
                key: OccurrenceException(
                    is_paid=value.is_paid,
                    moved_to=value.moved_to,
                    order=value.order,
                )
                for key, value in self.exceptions.items()
            },
        )


class EntryResponse(BaseModel):
    id: str
    date: date
    name: str
    amount: Decimal
    type: str
    recurrence: str
    category: str | None = None
    is_paid: bool
    is_auto_pay: bool
    order: float | None = None
    exceptions: dict[str, ExceptionPayload] = {}


class InstanceResponse(BaseModel):
    id: str
    master_id: str
    occurrence_date: date
    date: date
    name: str
    amount: Decimal
    type: str
    recurrence: str
    category: str | None = None
    is_paid: bool
    is_auto_pay: bool
    order: float | None = None


class PaidPayload(BaseModel):
    is_paid: bool


class ReorderPayload(BaseModel):
    instance_id: str
    target_date: date
    target_order: float | None = None
    previous_order: float | None = None
    next_order: float | None = None


class InstanceSelectionPayload(BaseModel):
    instance_ids: list[str]


class SettingsPayload(BaseModel):
    rollover_preference: str | None = None
    timezone: str | None = None


class SettingsResponse(BaseModel):
    rollover_preference: str
    timezone: str


class WeeklyBalanceResponse(BaseModel):
    start: Decimal
    end: Decimal


class WeeklyTotalsResponse(BaseModel):
    week_start: date
    income: Decimal
    bills: Decimal
    net: Decimal
    start_of_week_balance: Decimal
    status: Decimal


class MonthlySummaryResponse(BaseModel):
    month: str
    income: Decimal
    bills: Decimal
    net: Decimal
    start_of_month_balance: Decimal
    end_of_month_balance: Decimal


class CategoryBreakdownResponse(BaseModel):
    category: str
    total: Decimal
    instances: list[InstanceResponse]


class ScoreResponse(BaseModel):
    score: int
    commentary: str
    date: date
    rank: str


class ReminderResponse(BaseModel):
    tag: str
    title: str
    body: str
    due_at: datetime
    entry_id: str


class ShareResponse(BaseModel):
    token: str


class SharedProjectionResponse(BaseModel):
    rollover_preference: str
    timezone: str
    instances: list[InstanceResponse]
    weekly_balances: dict[str, WeeklyBalanceResponse]


def load_entries(kv: KeyValueStore) -> list[MasterEntry]:
    return [MasterEntry.from_dict(item) for item in kv.get(ENTRIES_KEY, [])]


def save_entries(kv: KeyValueStore, entries: list[MasterEntry]) -> None:
    kv.set(ENTRIES_KEY, [entry.to_dict() for entry in entries])


def load_rollover(kv: KeyValueStore) -> str:
    return kv.get(ROLLOVER_KEY, settings.default_rollover)


def load_timezone(kv: KeyValueStore) -> str:
    return kv.get(TIMEZONE_KEY, settings.default_timezone)


def today_in(timezone: str) -> date:
    return datetime.now(resolve_timezone(timezone)).date()


def default_window(today: date, months_back: int, months_ahead: int) -> tuple[date, date]:
    return (
        month_start(shift_month(today, -months_back)),
        month_end(shift_month(today, months_ahead)),
    )


def entry_response(entry: MasterEntry) -> EntryResponse:
    return EntryResponse(
        id=entry.id,
        date=entry.date,
        name=entry.name,
        amount=entry.amount,
        type=entry.type,
        recurrence=entry.recurrence,
        category=entry.category,
        is_paid=entry.is_paid,
        is_auto_pay=entry.is_auto_pay,
        order=entry.order,
        exceptions={
            format_date(key): ExceptionPayload(
                is_paid=value.is_paid,
                moved_to=value.moved_to,
                order=value.order,
            )
            for key, value in sorted(entry.exceptions.items())
        },
    )


def instance_response(instance: EntryInstance) -> InstanceResponse:
    return InstanceResponse(
        id=instance.id,
        master_id=instance.master_id,
        occurrence_date=instance.occurrence_date,
        date=instance.date,
        name=instance.name,
        amount=instance.amount,
        type=instance.type,
        recurrence=instance.recurrence,
        category=instance.category,
        is_paid=instance.is_paid,
        is_auto_pay=instance.is_auto_pay,
        order=instance.order,
    )


def project_dashboard(
    kv: KeyValueStore, as_of: date | None = None
) -> tuple[list[EntryInstance], date]:
    timezone = load_timezone(kv)
    today = as_of or today_in(timezone)
    window_start, window_end = default_window(
        today, settings.months_back, settings.months_ahead
    )
    return materialize(load_entries(kv), window_start, window_end, as_of=today), today


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/entries", response_model=list[EntryResponse])
def list_entries(kv: KeyValueStore = Depends(get_store)) -> list[EntryResponse]:
    return [entry_response(entry) for entry in load_entries(kv)]


@app.put("/entries", response_model=list[EntryResponse])
def replace_entries(
    payloads: list[EntryPayload],
    kv: KeyValueStore = Depends(get_store),
) -> list[EntryResponse]:
    entries: list[MasterEntry] = []
    try:
        for payload in payloads:
            payload = EntryPayload.validate_payload(payload)
            entries.append(payload.to_entry(payload.id or str(uuid.uuid4())))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, entries)
    logger.info("Replaced entries ({} total)", len(entries))
    return [entry_response(entry) for entry in entries]


@app.post("/entries", response_model=EntryResponse)
def create_entry(
    payload: EntryPayload,
    kv: KeyValueStore = Depends(get_store),
) -> EntryResponse:
    try:
        payload = EntryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    entries = load_entries(kv)
    entry_id = payload.id or str(uuid.uuid4())
    if any(entry.id == entry_id for entry in entries):
        raise HTTPException(status_code=409, detail="Entry already exists.")
    if payload.order is None:
        payload.order = float(sum(1 for entry in entries if entry.date == payload.date))
    try:
        entry = payload.to_entry(entry_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, entries + [entry])
    return entry_response(entry)


@app.put("/entries/{entry_id}", response_model=EntryResponse)
def update_entry(
    entry_id: str,
    payload: EntryPayload,
    kv: KeyValueStore = Depends(get_store),
) -> EntryResponse:
    try:
        payload = EntryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    entries = load_entries(kv)
    for index, existing in enumerate(entries):
        if existing.id == entry_id:
            try:
                entries[index] = payload.to_entry(entry_id)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            save_entries(kv, entries)
            return entry_response(entries[index])
    raise HTTPException(status_code=404, detail="Entry not found.")


@app.delete("/entries/{entry_id}")
def delete_entry(entry_id: str, kv: KeyValueStore = Depends(get_store)) -> dict:
    entries = load_entries(kv)
    remaining = [entry for entry in entries if entry.id != entry_id]
    if len(remaining) == len(entries):
        raise HTTPException(status_code=404, detail="Entry not found.")
    save_entries(kv, remaining)
    return {"status": "deleted"}


@app.post(
    "/entries/{entry_id}/occurrences/{occurrence_date}/paid",
    response_model=EntryResponse,
)
def set_paid(
    entry_id: str,
    occurrence_date: date,
    payload: PaidPayload,
    kv: KeyValueStore = Depends(get_store),
) -> EntryResponse:
    entries = load_entries(kv)
    for index, existing in enumerate(entries):
        if existing.id == entry_id:
            try:
                entries[index] = set_occurrence_paid(existing, occurrence_date, payload.is_paid)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            save_entries(kv, entries)
            return entry_response(entries[index])
    raise HTTPException(status_code=404, detail="Entry not found.")


@app.post("/entries/reorder", response_model=list[EntryResponse])
def reorder_entry(
    payload: ReorderPayload,
    kv: KeyValueStore = Depends(get_store),
) -> list[EntryResponse]:
    target_order = payload.target_order
    if target_order is None:
        target_order = order_between(payload.previous_order, payload.next_order)
    try:
        entries = reorder(
            load_entries(kv), payload.instance_id, payload.target_date, target_order
        )
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, entries)
    return [entry_response(entry) for entry in entries]


@app.post("/entries/complete", response_model=list[EntryResponse])
def complete_instances(
    payload: InstanceSelectionPayload,
    kv: KeyValueStore = Depends(get_store),
) -> list[EntryResponse]:
    try:
        entries = mark_instances_paid(load_entries(kv), payload.instance_ids)
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, entries)
    logger.info("Marked {} instances as complete", len(payload.instance_ids))
    return [entry_response(entry) for entry in entries]


@app.post("/entries/bulk-delete", response_model=list[EntryResponse])
def bulk_delete_instances(
    payload: InstanceSelectionPayload,
    kv: KeyValueStore = Depends(get_store),
) -> list[EntryResponse]:
    try:
        entries = delete_instances(load_entries(kv), payload.instance_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, entries)
    return [entry_response(entry) for entry in entries]


@app.get("/settings", response_model=SettingsResponse)
def get_settings(kv: KeyValueStore = Depends(get_store)) -> SettingsResponse:
    return SettingsResponse(
        rollover_preference=load_rollover(kv),
        timezone=load_timezone(kv),
    )


@app.put("/settings", response_model=SettingsResponse)
def update_settings(
    payload: SettingsPayload,
    kv: KeyValueStore = Depends(get_store),
) -> SettingsResponse:
    try:
        if payload.rollover_preference is not None:
            kv.set(ROLLOVER_KEY, normalize_rollover(payload.rollover_preference))
        if payload.timezone is not None:
            resolve_timezone(payload.timezone)
            kv.set(TIMEZONE_KEY, payload.timezone)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return get_settings(kv)


@app.get("/projection", response_model=list[InstanceResponse])
def projection(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> list[InstanceResponse]:
    today = as_of or today_in(load_timezone(kv))
    default_start, default_end = default_window(
        today, settings.months_back, settings.months_ahead
    )
    start_date = start_date or default_start
    end_date = end_date or default_end
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    try:
        instances = materialize(load_entries(kv), start_date, end_date, as_of=today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [instance_response(instance) for instance in sort_instances(instances)]


@app.get("/balances/weekly", response_model=dict[str, WeeklyBalanceResponse])
def weekly_balances(
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> dict[str, WeeklyBalanceResponse]:
    try:
        instances, _ = project_dashboard(kv, as_of)
        balances = aggregate(instances, load_rollover(kv))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    snapshot = balances_to_dict(balances)
    if kv.get(WEEKLY_BALANCES_KEY) != snapshot:
        kv.set(WEEKLY_BALANCES_KEY, snapshot)
        logger.info("Weekly balance snapshot updated ({} weeks)", len(snapshot))
    return {
        key: WeeklyBalanceResponse(start=value.start, end=value.end)
        for key, value in balances.items()
    }


@app.get("/summary/weekly", response_model=WeeklyTotalsResponse)
def weekly_summary(
    day: date | None = Query(None),
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> WeeklyTotalsResponse:
    try:
        instances, today = project_dashboard(kv, as_of)
        selected = day or today
        totals = weekly_totals(instances, aggregate(instances, load_rollover(kv)), selected)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return WeeklyTotalsResponse(
        week_start=week_start(selected),
        income=totals.income,
        bills=totals.bills,
        net=totals.net,
        start_of_week_balance=totals.start_of_week_balance,
        status=totals.status,
    )


@app.get("/summary/monthly", response_model=MonthlySummaryResponse)
def monthly_summary(
    month: str | None = Query(None),
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> MonthlySummaryResponse:
    try:
        instances, today = project_dashboard(kv, as_of)
        target = parse_month(month) if month else month_start(today)
        summary = summarize(instances, aggregate(instances, load_rollover(kv)), target)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MonthlySummaryResponse(
        month=target.strftime("%Y-%m"),
        income=summary.income,
        bills=summary.bills,
        net=summary.net,
        start_of_month_balance=summary.start_of_month_balance,
        end_of_month_balance=summary.end_of_month_balance,
    )


@app.get("/summary/categories", response_model=list[CategoryBreakdownResponse])
def category_summary(
    month: str | None = Query(None),
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> list[CategoryBreakdownResponse]:
    try:
        instances, today = project_dashboard(kv, as_of)
        breakdown = category_breakdown(instances, month or format_date(today))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        CategoryBreakdownResponse(
            category=item.category,
            total=item.total,
            instances=[instance_response(instance) for instance in item.instances],
        )
        for item in breakdown
    ]


@app.get("/score", response_model=ScoreResponse)
def budget_score(
    as_of: date | None = Query(None),
    kv: KeyValueStore = Depends(get_store),
) -> ScoreResponse:
    try:
        instances, today = project_dashboard(kv, as_of)
        result = calculate_score(instances, today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    history = [BudgetScore.from_dict(item) for item in kv.get(SCORE_HISTORY_KEY, [])]
    kv.set(SCORE_HISTORY_KEY, [item.to_dict() for item in record_score(history, result)])
    return ScoreResponse(
        score=result.score,
        commentary=result.commentary,
        date=result.date,
        rank=result.rank,
    )


@app.get("/score/history", response_model=list[ScoreResponse])
def budget_score_history(kv: KeyValueStore = Depends(get_store)) -> list[ScoreResponse]:
    history = [BudgetScore.from_dict(item) for item in kv.get(SCORE_HISTORY_KEY, [])]
    return [
        ScoreResponse(
            score=item.score,
            commentary=item.commentary,
            date=item.date,
            rank=item.rank,
        )
        for item in history
    ]


@app.get("/reminders", response_model=list[ReminderResponse])
def reminders(kv: KeyValueStore = Depends(get_store)) -> list[ReminderResponse]:
    timezone = load_timezone(kv)
    try:
        zone = resolve_timezone(timezone)
        upcoming = due_reminders(
            load_entries(kv),
            datetime.now(zone),
            timezone,
            window_days=settings.reminder_days,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        ReminderResponse(
            tag=reminder.tag,
            title=reminder.title,
            body=reminder.body,
            due_at=reminder.due_at,
            entry_id=reminder.entry_id,
        )
        for reminder in upcoming
    ]


@app.get("/export")
def export_data(kv: KeyValueStore = Depends(get_store)) -> dict:
    return export_bundle(load_entries(kv), load_rollover(kv), load_timezone(kv))


@app.post("/import", response_model=SettingsResponse)
def import_data(payload: dict, kv: KeyValueStore = Depends(get_store)) -> SettingsResponse:
    try:
        bundle = load_bundle(payload)
    except InvalidBundleError as exc:
        logger.warning("Rejected import: {}", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_entries(kv, list(bundle.entries))
    kv.set(ROLLOVER_KEY, bundle.rollover_preference)
    kv.set(TIMEZONE_KEY, bundle.timezone)
    logger.info("Imported {} entries", len(bundle.entries))
    return get_settings(kv)


@app.get("/share", response_model=ShareResponse)
def share(kv: KeyValueStore = Depends(get_store)) -> ShareResponse:
    bundle = export_bundle(load_entries(kv), load_rollover(kv), load_timezone(kv))
    return ShareResponse(token=encode_share_token(bundle))


@app.get("/shared/projection", response_model=SharedProjectionResponse)
def shared_projection(
    data: str = Query(...),
    as_of: date | None = Query(None),
) -> SharedProjectionResponse:
    try:
        bundle = decode_share_token(data)
        today = as_of or today_in(bundle.timezone)
        window_start, window_end = default_window(
            today, settings.shared_months_back, settings.shared_months_ahead
        )
        instances = materialize(bundle.entries, window_start, window_end, as_of=today)
        balances = aggregate(instances, bundle.rollover_preference)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SharedProjectionResponse(
        rollover_preference=bundle.rollover_preference,
        timezone=bundle.timezone,
        instances=[instance_response(instance) for instance in sort_instances(instances)],
        weekly_balances={
            key: WeeklyBalanceResponse(start=value.start, end=value.end)
            for key, value in balances.items()
        },
    )
