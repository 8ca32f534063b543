import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings, validate_settings
from hospital_queue.db.locking import StorageUnavailableError
from hospital_queue.db.session import SessionLocal, engine
from hospital_queue.models import Base
from hospital_queue.routers.audit import router as audit_router
from hospital_queue.routers.auth import router as auth_router
from hospital_queue.routers.blocked_dates import router as blocked_dates_router
from hospital_queue.routers.bookings import router as bookings_router
from hospital_queue.routers.calendar import router as calendar_router
from hospital_queue.routers.clinics import router as clinics_router
from hospital_queue.routers.patient_ids import router as patient_ids_router
from hospital_queue.routers.patients import router as patients_router
from hospital_queue.routers.prescriptions import router as prescriptions_router
from hospital_queue.routers.reports import router as reports_router
from hospital_queue.routers.templates import router as templates_router
from hospital_queue.routers.users import router as users_router
from hospital_queue.services.users import seed_initial_admin

app = FastAPI(title="Hospital Queue API", version="0.1.0")
logger = logging.getLogger("hospital_queue.startup")


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    request_id = request.headers.get("x-request-id")
    payload = {"detail": str(exc)}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=503, content=payload, headers={"Retry-After": "2"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)

    admin_email = str(settings.admin_email)
    admin_password = settings.admin_password.strip()
    db: Session = SessionLocal()
    try:
        created = seed_initial_admin(db, email=admin_email, password=admin_password)
        if created:
            logger.info("Initial admin created for %s (must change password on first login).", admin_email)
        else:
            logger.info("Initial admin not created (users already exist).")
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(patients_router)
app.include_router(patient_ids_router)
app.include_router(calendar_router)
app.include_router(bookings_router)
app.include_router(templates_router)
app.include_router(clinics_router)
app.include_router(blocked_dates_router)
app.include_router(prescriptions_router)
app.include_router(audit_router)
app.include_router(reports_router)
