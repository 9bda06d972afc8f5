import logging
from typing import Any, NoReturn, Optional

from fastapi import Body, Cookie, Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import (
    SESSION_COOKIE_NAME,
    SessionUser,
    authenticate,
    create_session_token,
    get_user_from_token,
    session_max_age_secs,
)
from config import get_settings
from database import SessionLocal
from periods import month_period
from results import DEFAULT_MESSAGES, ErrorCategory, ErrorKind, LedgerError
from schemas import (
    AccountOut,
    DeletedOut,
    LoginIn,
    SessionUserOut,
    SummaryOut,
    TransactionDraft,
    TransactionOut,
)
from services import (
    AccountService,
    SummaryService,
    TransactionService,
    to_account_out,
    to_transaction_out,
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")

STATUS_BY_CATEGORY = {
    ErrorCategory.unauthorized: 401,
    ErrorCategory.validation: 400,
    ErrorCategory.referential: 400,
    ErrorCategory.not_found: 404,
    ErrorCategory.configuration: 409,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def raise_failure(error: LedgerError) -> NoReturn:
    raise HTTPException(
        status_code=STATUS_BY_CATEGORY[error.category],
        detail={"kind": error.kind.value, "message": error.message},
    )


def get_current_user(
    token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> SessionUser:
    user = get_user_from_token(token)
    if user is None:
        raise_failure(
            LedgerError(ErrorKind.unauthorized, DEFAULT_MESSAGES[ErrorKind.unauthorized])
        )
    return user


def draft_from_body(body: Any) -> TransactionDraft:
    # Anything but a JSON object carries no fields; the ledger reports the first missing one.
    if not isinstance(body, dict):
        body = {}
    return TransactionDraft.model_validate(body)


def transaction_service(db: Session, user: SessionUser) -> TransactionService:
    return TransactionService(
        db, user.id, preferred_account_id=get_settings().default_account_id
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        f"database_error: method={request.method} path={request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.post("/api/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    user = authenticate(db, email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    response.set_cookie(
        SESSION_COOKIE_NAME,
        create_session_token(user),
        max_age=session_max_age_secs(),
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().cookie_secure,
    )
    logger.info(f"login: user_id={user.id}")
    return {"user": SessionUserOut(id=str(user.id), email=user.email, name=user.name)}


@app.post("/api/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@app.get("/api/me")
def me(token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE_NAME)):
    user = get_user_from_token(token)
    if user is None:
        return JSONResponse(status_code=401, content={"user": None})
    return {"user": SessionUserOut(id=str(user.id), email=user.email, name=user.name)}


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    month: Optional[str] = None,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = None
    if month:
        try:
            period = month_period(month)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    records = transaction_service(db, user).list(period)
    return [to_transaction_out(record) for record in records]


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    body: Any = Body(default=None),
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = transaction_service(db, user).create(draft_from_body(body))
    if not result.ok:
        raise_failure(result.error)
    if result.degraded:
        return JSONResponse(
            status_code=201,
            content={"message": "Transaction saved but could not be read back"},
        )
    return to_transaction_out(result.value)


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    body: Any = Body(default=None),
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = transaction_service(db, user).update(
        transaction_id, draft_from_body(body)
    )
    if not result.ok:
        raise_failure(result.error)
    if result.degraded:
        return JSONResponse(
            status_code=200,
            content={"message": "Transaction updated but could not be read back"},
        )
    return to_transaction_out(result.value)


@app.delete("/api/transactions/{transaction_id}", response_model=DeletedOut)
def delete_transaction(
    transaction_id: int,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = transaction_service(db, user).delete(transaction_id)
    if not result.ok:
        raise_failure(result.error)
    return DeletedOut(id=str(result.value))


@app.get("/api/accounts", response_model=list[AccountOut])
def list_accounts(
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [to_account_out(account) for account in AccountService(db, user.id).list_all()]


@app.get("/api/summary", response_model=SummaryOut)
def summary(
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return SummaryService(db, user.id).summary()
