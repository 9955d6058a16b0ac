import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    RedirectResponse,
    Response,
    StreamingResponse,
)
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.orm import Session

from assistant import AssistantClient, AssistantError, get_assistant
from config import get_settings
from csrf import ANONYMOUS, generate_csrf_token, validate_csrf_token
from csv_utils import (
    ParsedTransaction,
    export_tax_breakdown,
    export_transactions,
    parse_amount,
    parse_csv,
)
from database import SessionLocal, init_db
from identity import IdentityClient, IdentityError, get_identity
from models import TransactionType
from schemas import (
    MONTH_NAMES,
    AssistantIn,
    AssistantOut,
    FilingIn,
    ProfileIn,
    SignupIn,
    TransactionFieldIn,
    TransactionIn,
)
from services import (
    FilingService,
    ImportService,
    ProfileService,
    SummaryService,
    TransactionService,
)
from sessions import (
    SESSION_COOKIE,
    LoginRequired,
    PortalSession,
    SessionState,
    clear_session,
    read_access_token,
    store_session,
)
from storage import (
    ReceiptStorage,
    StorageError,
    get_receipt_storage,
    receipt_key,
    validate_receipt,
)
from tax import effective_category

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="TaxMate")
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")

TRANSACTIONS_CHANGED = {"HX-Trigger": "transactions-changed"}


def format_currency(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}£{abs(value):,.2f}"


templates.env.filters["currency"] = format_currency
templates.env.globals["TransactionType"] = TransactionType
templates.env.globals["MONTH_NAMES"] = MONTH_NAMES
templates.env.globals["effective_category"] = effective_category


def static_path(path: str) -> str:
    return app.url_path_for("static", path=path)


templates.env.globals["static_path"] = static_path


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    init_db()


def portal_context(
    request: Request,
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity),
) -> PortalSession:
    portal = PortalSession(
        db=db, identity=identity, cookie=request.cookies.get(SESSION_COOKIE)
    )
    if portal.resolve() != SessionState.authenticated:
        raise LoginRequired()
    return portal


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    if request.url.path.startswith("/api/"):
        response = JSONResponse({"detail": "Not authenticated"}, status_code=401)
    elif request.headers.get("HX-Request"):
        response = Response(status_code=204, headers={"HX-Redirect": "/login"})
    else:
        response = RedirectResponse(url="/login", status_code=303)
    clear_session(response)
    return response


def render(
    request: Request,
    template: str,
    context: dict[str, object],
    portal: Optional[PortalSession] = None,
    status_code: int = 200,
) -> HTMLResponse:
    ctx: dict[str, object] = {
        "portal": portal,
        "csrf": generate_csrf_token(portal.user_id if portal else ANONYMOUS),
    }
    ctx.update(context)
    return templates.TemplateResponse(request, template, ctx, status_code=status_code)


def require_csrf(token: object, user_id: str = ANONYMOUS) -> None:
    if not validate_csrf_token(str(token or ""), user_id):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def validation_messages(exc: ValidationError) -> list[str]:
    return [err["msg"].removeprefix("Value error, ") for err in exc.errors()]


def after_write(request: Request, url: str) -> Response:
    if request.headers.get("HX-Request"):
        return Response(status_code=204, headers=TRANSACTIONS_CHANGED)
    return RedirectResponse(url=url, status_code=303, headers=TRANSACTIONS_CHANGED)


def greeting(now: datetime) -> str:
    if now.hour < 12:
        return "Good Morning"
    if now.hour < 18:
        return "Good Afternoon"
    return "Good Evening"


def safe_filename(value: str) -> str:
    # Month labels only need letters, digits and spaces.
    return re.sub(r"[^A-Za-z0-9 _-]", "", value).strip() or "export"


def optional_text(value: object) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


# Public pages


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    return render(request, "index.html", {})


@app.get("/signup", response_class=HTMLResponse)
def signup_page(request: Request):
    return render(request, "signup.html", {"form": {}, "errors": []})


@app.post("/signup")
async def signup_submit(
    request: Request,
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity),
):
    form = await request.form()
    require_csrf(form.get("csrf_token"))
    fields = {key: value for key, value in form.items() if key != "csrf_token"}
    try:
        data = SignupIn(**fields)
    except ValidationError as exc:
        return render(
            request,
            "signup.html",
            {"form": fields, "errors": validation_messages(exc)},
            status_code=400,
        )
    try:
        user, auth = await run_in_threadpool(
            identity.sign_up, data.email, data.password
        )
    except IdentityError as exc:
        logger.error(f"signup_failed: email={data.email} error={exc}")
        return render(
            request,
            "signup.html",
            {"form": fields, "errors": [f"Signup error: {exc}"]},
            status_code=400,
        )
    ProfileService(db, user.id).create_from_signup(data)
    if auth is None:
        return RedirectResponse(url="/login?registered=1", status_code=303)
    response = RedirectResponse(url="/portal", status_code=303)
    store_session(response, auth)
    return response


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    registered = request.query_params.get("registered") == "1"
    return render(request, "login.html", {"error": None, "registered": registered})


@app.post("/login")
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    csrf_token: str = Form(...),
    identity: IdentityClient = Depends(get_identity),
):
    require_csrf(csrf_token)
    try:
        auth = identity.sign_in(email.strip(), password)
    except IdentityError as exc:
        logger.warning(f"login_failed: email={email} error={exc}")
        return render(
            request,
            "login.html",
            {"error": str(exc), "registered": False, "email": email},
            status_code=400,
        )
    response = RedirectResponse(url="/portal", status_code=303)
    store_session(response, auth)
    return response


@app.post("/logout")
def logout(
    csrf_token: str = Form(...),
    portal: PortalSession = Depends(portal_context),
):
    require_csrf(csrf_token, portal.user_id)
    try:
        portal.identity.sign_out(portal.access_token or "")
    except IdentityError as exc:
        logger.error(f"logout_failed: user={portal.user_id} error={exc}")
    response = RedirectResponse(url="/login", status_code=303)
    clear_session(response)
    return response


@app.get("/reset-password", response_class=HTMLResponse)
def reset_password_page(request: Request):
    return render(request, "reset_password.html", {"message": None, "error": None})


@app.post("/reset-password", response_class=HTMLResponse)
def reset_password_submit(
    request: Request,
    email: str = Form(...),
    csrf_token: str = Form(...),
    identity: IdentityClient = Depends(get_identity),
):
    require_csrf(csrf_token)
    try:
        identity.send_password_reset(
            email.strip(), redirect_to=str(request.url_for("forgot_password_page"))
        )
    except IdentityError as exc:
        logger.error(f"password_reset_failed: email={email} error={exc}")
        return render(
            request,
            "reset_password.html",
            {"message": None, "error": str(exc)},
            status_code=400,
        )
    return render(
        request,
        "reset_password.html",
        {"message": "Check your email for a password reset link.", "error": None},
    )


@app.get("/forgot-password", response_class=HTMLResponse)
def forgot_password_page(request: Request):
    token = request.query_params.get("access_token", "")
    return render(
        request,
        "forgot_password.html",
        {"token": token, "message": None, "error": None},
    )


@app.post("/forgot-password", response_class=HTMLResponse)
def forgot_password_submit(
    request: Request,
    password: str = Form(...),
    confirm_password: str = Form(...),
    csrf_token: str = Form(...),
    token: str = Form(""),
    identity: IdentityClient = Depends(get_identity),
):
    require_csrf(csrf_token)
    access_token = token or read_access_token(request.cookies.get(SESSION_COOKIE))
    error = None
    if not access_token:
        error = "Your reset link is invalid or has expired."
    elif len(password) < 8:
        error = "Password must be at least 8 characters."
    elif password != confirm_password:
        error = "Passwords do not match."
    if error is None:
        try:
            identity.update_password(access_token, password)
        except IdentityError as exc:
            logger.error(f"password_update_failed: error={exc}")
            error = "Failed to update password. Try again."
    if error:
        return render(
            request,
            "forgot_password.html",
            {"token": token, "message": None, "error": error},
            status_code=400,
        )
    return render(
        request,
        "forgot_password.html",
        {"token": "", "message": "Password updated successfully!", "error": None},
    )


# Portal


@app.get("/portal", response_class=HTMLResponse)
def portal_home(request: Request, portal: PortalSession = Depends(portal_context)):
    filings = FilingService(portal.db, portal.user_id)
    totals = TransactionService(portal.db, portal.user_id).totals()
    return render(
        request,
        "portal/index.html",
        {
            "greeting": greeting(datetime.now(ZoneInfo(get_settings().timezone))),
            "totals": totals,
            "filings": filings.list_all(),
            "pending_count": filings.pending_count(),
        },
        portal,
    )


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, portal: PortalSession = Depends(portal_context)):
    filings = FilingService(portal.db, portal.user_id).list_all()
    return render(
        request,
        "portal/dashboard.html",
        {"profile": portal.profile, "filings": filings},
        portal,
    )


@app.get("/portal/profile", response_class=HTMLResponse)
def profile_page(request: Request, portal: PortalSession = Depends(portal_context)):
    return render(
        request,
        "portal/profile.html",
        {"profile": portal.profile, "errors": [], "message": None},
        portal,
    )


@app.post("/portal/profile", response_class=HTMLResponse)
async def profile_submit(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    try:
        data = ProfileIn(
            full_name=str(form.get("full_name", "")).strip(),
            dob=optional_text(form.get("dob")),
            ni_number=optional_text(form.get("ni_number")),
            country=optional_text(form.get("country")),
            occupation=optional_text(form.get("occupation")),
            account_method=optional_text(form.get("account_method")),
            phone_number=optional_text(form.get("phone_number")),
        )
    except ValidationError as exc:
        return render(
            request,
            "portal/profile.html",
            {"profile": portal.profile, "errors": validation_messages(exc), "message": None},
            portal,
            status_code=400,
        )
    profile = ProfileService(portal.db, portal.user_id).update(data)
    portal.profile = profile
    return render(
        request,
        "portal/profile.html",
        {"profile": profile, "errors": [], "message": "Profile saved."},
        portal,
    )


@app.get("/portal/new-filing", response_class=HTMLResponse)
def new_filing_page(request: Request, portal: PortalSession = Depends(portal_context)):
    return render(
        request,
        "portal/new_filing.html",
        {"year": date.today().year, "message": None, "filing": None},
        portal,
    )


@app.post("/portal/new-filing", response_class=HTMLResponse)
async def new_filing_submit(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    try:
        data = FilingIn(
            mode=form.get("mode", "monthly"),
            tax_year=int(form.get("tax_year", "")),
            month=form.get("month") or None,
            income_cents=parse_amount(str(form.get("income") or "0")),
            expense_cents=parse_amount(str(form.get("expenses") or "0")),
        )
    except ValidationError as exc:
        message = "; ".join(validation_messages(exc))
        return render(
            request,
            "portal/new_filing.html",
            {"year": form.get("tax_year"), "message": f"Error creating filing: {message}", "filing": None},
            portal,
            status_code=400,
        )
    except ValueError as exc:
        return render(
            request,
            "portal/new_filing.html",
            {"year": form.get("tax_year"), "message": f"Error creating filing: {exc}", "filing": None},
            portal,
            status_code=400,
        )
    filing = FilingService(portal.db, portal.user_id).create_with_totals(data)
    return render(
        request,
        "portal/new_filing.html",
        {"year": data.tax_year, "message": "Filing saved!", "filing": filing},
        portal,
    )


@app.get("/portal/continue-filing", response_class=HTMLResponse)
def continue_filing(request: Request, portal: PortalSession = Depends(portal_context)):
    filings = FilingService(portal.db, portal.user_id).list_all()
    return render(request, "portal/continue_filing.html", {"filings": filings}, portal)


@app.get("/portal/filing/{filing_id}", response_class=HTMLResponse)
def filing_detail(
    filing_id: int, request: Request, portal: PortalSession = Depends(portal_context)
):
    try:
        filing = FilingService(portal.db, portal.user_id).get(filing_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    transactions = TransactionService(portal.db, portal.user_id).list_for_filing(filing_id)
    return render(
        request,
        "portal/filing.html",
        {
            "filing": filing,
            "transactions": transactions,
            "message": request.query_params.get("message"),
        },
        portal,
    )


@app.post("/portal/filing/{filing_id}/submit")
def submit_filing(
    filing_id: int,
    request: Request,
    csrf_token: str = Form(...),
    portal: PortalSession = Depends(portal_context),
):
    require_csrf(csrf_token, portal.user_id)
    try:
        FilingService(portal.db, portal.user_id).submit(filing_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return RedirectResponse(
        url=f"/portal/filing/{filing_id}?message=Filing+submitted+successfully.",
        status_code=303,
    )


@app.post("/portal/filing/{filing_id}/transactions/{transaction_id}/delete")
def delete_filing_transaction(
    filing_id: int,
    transaction_id: int,
    request: Request,
    csrf_token: str = Form(...),
    portal: PortalSession = Depends(portal_context),
):
    require_csrf(csrf_token, portal.user_id)
    service = TransactionService(portal.db, portal.user_id)
    try:
        txn = service.get(transaction_id)
        if txn.filing_id != filing_id:
            raise ValueError("Transaction not found")
        service.delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return after_write(
        request, f"/portal/filing/{filing_id}?message=Transaction+deleted."
    )


@app.get("/portal/add-transaction", response_class=HTMLResponse)
def add_transaction_page(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    filing = FilingService(portal.db, portal.user_id).get_or_create_for_year(
        date.today().year
    )
    portal.db.commit()
    return render(
        request,
        "portal/add_transaction.html",
        {"filing": filing, "message": None, "saved": False},
        portal,
    )


@app.post("/portal/add-transaction", response_class=HTMLResponse)
async def add_transaction_submit(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    filing = FilingService(portal.db, portal.user_id).get_or_create_for_year(
        date.today().year
    )
    try:
        data = TransactionIn(
            date=date.fromisoformat(str(form.get("date", ""))),
            type=TransactionType(form.get("type", "expense")),
            amount_cents=parse_amount(str(form.get("amount", "")), allow_negative=True),
            category=optional_text(form.get("category")),
            description=optional_text(form.get("description")),
            filing_id=filing.id,
        )
    except (ValueError, ValidationError) as exc:
        portal.db.commit()
        return render(
            request,
            "portal/add_transaction.html",
            {"filing": filing, "message": f"Error saving transaction: {exc}", "saved": False},
            portal,
            status_code=400,
        )
    TransactionService(portal.db, portal.user_id).create(data)
    response = render(
        request,
        "portal/add_transaction.html",
        {"filing": filing, "message": "Transaction saved!", "saved": True},
        portal,
    )
    response.headers.update(TRANSACTIONS_CHANGED)
    return response


@app.get("/portal/transactions", response_class=HTMLResponse)
def transactions_page(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    groups = TransactionService(portal.db, portal.user_id).grouped_by_month()
    return render(request, "portal/transactions.html", {"groups": groups}, portal)


@app.get("/portal/components/transaction-table", response_class=HTMLResponse)
def component_transaction_table(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    groups = TransactionService(portal.db, portal.user_id).grouped_by_month()
    return render(
        request, "components/transaction_table.html", {"groups": groups}, portal
    )


@app.get("/portal/transactions/{transaction_id}/edit", response_class=HTMLResponse)
def edit_transaction_page(
    transaction_id: int,
    request: Request,
    portal: PortalSession = Depends(portal_context),
):
    try:
        txn = TransactionService(portal.db, portal.user_id).get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return render(request, "portal/transaction_edit.html", {"transaction": txn}, portal)


@app.post("/portal/transactions/{transaction_id}/edit")
async def edit_transaction_submit(
    transaction_id: int,
    request: Request,
    portal: PortalSession = Depends(portal_context),
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    service = TransactionService(portal.db, portal.user_id)
    try:
        txn = service.get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        data = TransactionIn(
            date=date.fromisoformat(str(form.get("date", ""))),
            type=TransactionType(form.get("type", "")),
            amount_cents=parse_amount(str(form.get("amount", "")), allow_negative=True),
            category=optional_text(form.get("category")),
            description=optional_text(form.get("description")),
            filing_id=txn.filing_id,
        )
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    service.update(transaction_id, data)
    return after_write(request, "/portal/transactions")


@app.post("/portal/transactions/{transaction_id}/field")
async def update_transaction_field(
    transaction_id: int,
    request: Request,
    portal: PortalSession = Depends(portal_context),
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    try:
        data = TransactionFieldIn(
            field=form.get("field", ""), value=str(form.get("value", ""))
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Unsupported field") from exc
    service = TransactionService(portal.db, portal.user_id)
    try:
        service.get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        service.update_field(transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return after_write(request, str(form.get("next") or "/portal/transactions"))


@app.post("/portal/transactions/{transaction_id}/delete")
def delete_transaction(
    transaction_id: int,
    request: Request,
    csrf_token: str = Form(...),
    confirm: str = Form(""),
    portal: PortalSession = Depends(portal_context),
):
    require_csrf(csrf_token, portal.user_id)
    if confirm.strip() != "delete":
        raise HTTPException(status_code=400, detail="Type 'delete' to confirm")
    try:
        TransactionService(portal.db, portal.user_id).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return after_write(request, "/portal/transactions")


@app.get("/portal/transactions/{transaction_id}/notes", response_class=HTMLResponse)
def notes_page(
    transaction_id: int,
    request: Request,
    portal: PortalSession = Depends(portal_context),
):
    try:
        txn = TransactionService(portal.db, portal.user_id).get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return render(
        request,
        "portal/notes.html",
        {"transaction": txn, "message": None, "error": None},
        portal,
    )


@app.post("/portal/transactions/{transaction_id}/notes", response_class=HTMLResponse)
async def notes_submit(
    transaction_id: int,
    request: Request,
    csrf_token: str = Form(...),
    description: str = Form(""),
    receipt: Optional[UploadFile] = File(None),
    portal: PortalSession = Depends(portal_context),
    storage: ReceiptStorage = Depends(get_receipt_storage),
):
    require_csrf(csrf_token, portal.user_id)
    service = TransactionService(portal.db, portal.user_id)
    try:
        txn = service.get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    receipt_url = None
    error = None
    if receipt is not None and receipt.filename:
        content = await receipt.read()
        try:
            validate_receipt(receipt.content_type or "", len(content))
        except ValueError as exc:
            return render(
                request,
                "portal/notes.html",
                {"transaction": txn, "message": None, "error": str(exc)},
                portal,
                status_code=400,
            )
        key = receipt_key(txn.id)
        try:
            await run_in_threadpool(
                storage.upload,
                key,
                content,
                receipt.content_type or "application/octet-stream",
            )
            receipt_url = storage.public_url(key)
        except StorageError:
            error = "Failed to upload receipt."

    txn = service.update_notes(transaction_id, description.strip(), receipt_url)
    response = render(
        request,
        "portal/notes.html",
        {
            "transaction": txn,
            "message": "Saved successfully" if error is None else None,
            "error": error,
        },
        portal,
        status_code=502 if error else 200,
    )
    response.headers.update(TRANSACTIONS_CHANGED)
    return response


@app.get("/portal/uploads", response_class=HTMLResponse)
def uploads_page(request: Request, portal: PortalSession = Depends(portal_context)):
    return render(
        request,
        "portal/uploads.html",
        {"files": [], "rows": [], "errors": []},
        portal,
    )


@app.post("/portal/uploads/preview", response_class=HTMLResponse)
async def uploads_preview(
    request: Request,
    csrf_token: str = Form(...),
    files: list[UploadFile] = File(...),
    portal: PortalSession = Depends(portal_context),
):
    require_csrf(csrf_token, portal.user_id)
    rows: list[ParsedTransaction] = []
    errors: list[str] = []
    names: list[str] = []
    for upload in files:
        name = upload.filename or "upload"
        names.append(name)
        if not name.lower().endswith(".csv"):
            logger.info(f"upload_stored_for_later: user={portal.user_id} file={name}")
            continue
        try:
            content = (await upload.read()).decode("utf-8")
        except UnicodeDecodeError:
            errors.append(f"Failed to parse {name}")
            continue
        rows.extend(parse_csv(content))
    return render(
        request,
        "portal/uploads.html",
        {"files": names, "rows": rows, "errors": errors},
        portal,
    )


@app.post("/portal/uploads/accept", response_class=HTMLResponse)
async def uploads_accept(
    request: Request, portal: PortalSession = Depends(portal_context)
):
    form = await request.form()
    require_csrf(form.get("csrf_token"), portal.user_id)
    row = ImportService.row_from_form(form)
    try:
        txn = ImportService(portal.db, portal.user_id).accept(row)
    except ValueError as exc:
        return render(
            request,
            "components/parsed_row.html",
            {"row": row, "index": form.get("index", ""), "error": str(exc)},
            portal,
            status_code=400,
        )
    response = render(
        request,
        "components/parsed_row.html",
        {"row": row, "index": form.get("index", ""), "accepted": txn},
        portal,
    )
    response.headers.update(TRANSACTIONS_CHANGED)
    return response


@app.get("/portal/monthly-summary", response_class=HTMLResponse)
def monthly_summary(
    request: Request,
    month: Optional[str] = None,
    category: Optional[str] = None,
    portal: PortalSession = Depends(portal_context),
):
    view = SummaryService(portal.db, portal.user_id).monthly_summary(
        month=month or None, category=category or None
    )
    return render(request, "portal/monthly_summary.html", {"view": view}, portal)


@app.get("/portal/monthly-summary/details", response_class=HTMLResponse)
def monthly_summary_details(
    request: Request,
    month: str,
    txn_type: Optional[TransactionType] = Query(None, alias="type"),
    category: Optional[str] = None,
    portal: PortalSession = Depends(portal_context),
):
    rows = SummaryService(portal.db, portal.user_id).month_transactions(
        month, txn_type, category or None
    )
    return render(
        request,
        "components/month_transactions.html",
        {"month": month, "type": txn_type, "transactions": rows},
        portal,
    )


@app.get("/portal/monthly-summary/export.csv")
def monthly_summary_export(
    month: str,
    category: Optional[str] = None,
    portal: PortalSession = Depends(portal_context),
):
    rows = SummaryService(portal.db, portal.user_id).month_transactions(
        month, category=category or None
    )
    csv_text = export_transactions(rows)
    filename = f"{safe_filename(month)}-summary.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/portal/tax-summary", response_class=HTMLResponse)
def tax_summary(request: Request, portal: PortalSession = Depends(portal_context)):
    data = SummaryService(portal.db, portal.user_id).tax_data()
    return render(request, "portal/tax_summary.html", {"data": data}, portal)


@app.get("/portal/tax-summary/export.csv")
def tax_summary_export(portal: PortalSession = Depends(portal_context)):
    data = SummaryService(portal.db, portal.user_id).tax_data()
    csv_text = export_tax_breakdown(data.monthly_breakdown)
    filename = f"tax-summary-{date.today().isoformat()}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/assistant", response_model=AssistantOut)
def assistant_endpoint(
    payload: AssistantIn,
    portal: PortalSession = Depends(portal_context),
    assistant: AssistantClient = Depends(get_assistant),
):
    message = payload.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    try:
        reply = assistant.ask(message)
    except AssistantError as exc:
        logger.error(f"assistant_failed: user={portal.user_id} error={exc}")
        raise HTTPException(status_code=502, detail="Assistant is unavailable") from exc
    return AssistantOut(reply=reply)
