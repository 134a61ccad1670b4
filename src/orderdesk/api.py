"""FastAPI application exposing auth, design, party and transport endpoints."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List

import logging
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from pydantic import BaseModel, ConfigDict

from sqlalchemy.orm import Session

from .auth import (
    Identity,
    get_current_identity,
    get_db,
    get_password_hasher,
    get_token_codec,
    require_role,
)
from .config import settings
from .database import Design, Party, init_db
from .errors import (
    DuplicateUser,
    InvalidCredentials,
    NotFound,
    ValidationError,
    register_error_handlers,
)
from .models.user import Role, User
from .security import MAX_PASSWORD_BYTES, PasswordHasher, TokenClaims, TokenCodec
from .services import (
    create_designs,
    create_party,
    create_transport_option,
    create_user,
    delete_design,
    delete_party,
    delete_transport_option,
    get_party,
    get_transport_option,
    get_user_by_id,
    get_user_by_phone,
    list_colors,
    list_designs,
    list_item_types,
    list_parties,
    list_transport_options,
    list_users,
    update_design,
    update_party,
    update_transport_option,
    update_user_role,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


limiter = Limiter(
    key_func=get_remote_address, enabled=settings.rate_limit_enabled
)
app = FastAPI(title=settings.api_title, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

logger = logging.getLogger(__name__)

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


# -- schemas ----------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for registering a new user."""

    name: str | None = None
    phone: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    """Request body for user login."""

    phone: str | None = None
    password: str | None = None


class UserProfile(BaseModel):
    """Public fields of a user; never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str
    role: Role


class UserDetail(UserProfile):
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    """Token plus profile returned by register and login."""

    message: str
    token: str
    user: UserProfile


class ProfileResponse(BaseModel):
    user: UserDetail


class UserListResponse(BaseModel):
    users: List[UserDetail]


class RoleUpdateRequest(BaseModel):
    role: str | None = None


class RoleUpdateResponse(BaseModel):
    message: str
    user: UserDetail


class MessageResponse(BaseModel):
    message: str


class ItemTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    itemtype: str


class ColorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    color_name: str
    primary_color: str | None = None


class ItemTypeListResponse(BaseModel):
    itemTypes: List[ItemTypeResponse]


class ColorListResponse(BaseModel):
    colors: List[ColorResponse]


class CreatorName(BaseModel):
    """Name of the user who created a record."""

    name: str


class ItemTypeName(BaseModel):
    itemtype: str


class ColorName(BaseModel):
    color_name: str
    primary_color: str | None = None


class DesignCreateRequest(BaseModel):
    """Request body for creating a design in one or more colors."""

    design_number: str | None = None
    item_type_id: int | None = None
    color_ids: List[int] | None = None


class DesignUpdateRequest(BaseModel):
    """Request body for updating a single design row."""

    design_number: str | None = None
    item_type_id: int | None = None
    color_id: int | None = None


class DesignResponse(BaseModel):
    """Serialized design with its creator, item type and color embedded."""

    id: int
    design_number: str
    item_type_id: int
    color_id: int
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None
    user_profiles: CreatorName | None = None
    itemtype: ItemTypeName | None = None
    colors: ColorName | None = None


class DesignListResponse(BaseModel):
    designs: List[DesignResponse]


class DesignCreateResponse(BaseModel):
    message: str
    designs: List[DesignResponse]


class DesignUpdateResponse(BaseModel):
    message: str
    design: DesignResponse


class PartyRequest(BaseModel):
    """Request body for creating or updating a party."""

    name: str | None = None
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    phone_number: str | None = None
    gst_number: str | None = None


class PartyResponse(BaseModel):
    """Serialized party with its creator embedded."""

    id: int
    name: str
    description: str
    address: str
    city: str
    state: str
    pincode: str
    phone_number: str
    gst_number: str
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None
    user_profiles: CreatorName | None = None


class PartyListResponse(BaseModel):
    parties: List[PartyResponse]


class PartyEnvelope(BaseModel):
    party: PartyResponse


class PartyMutationResponse(BaseModel):
    message: str
    party: PartyResponse


class TransportRequest(BaseModel):
    """Request body for creating or updating a transport option."""

    transport_name: str | None = None
    description: str | None = None


class TransportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transport_name: str
    description: str
    created_at: datetime


class TransportListResponse(BaseModel):
    transportOptions: List[TransportResponse]


class TransportEnvelope(BaseModel):
    transport: TransportResponse


class TransportMutationResponse(BaseModel):
    message: str
    transport: TransportResponse


def _creator(user: User | None) -> CreatorName | None:
    return CreatorName(name=user.name) if user is not None else None


def serialize_design(design: Design) -> DesignResponse:
    return DesignResponse(
        id=design.id,
        design_number=design.design_number,
        item_type_id=design.item_type_id,
        color_id=design.color_id,
        created_by=design.created_by,
        created_at=design.created_at,
        updated_at=design.updated_at,
        user_profiles=_creator(design.creator),
        itemtype=ItemTypeName(itemtype=design.item_type.itemtype)
        if design.item_type is not None
        else None,
        colors=ColorName(
            color_name=design.color.color_name,
            primary_color=design.color.primary_color,
        )
        if design.color is not None
        else None,
    )


def serialize_party(party: Party) -> PartyResponse:
    return PartyResponse(
        id=party.id,
        name=party.name,
        description=party.description,
        address=party.address,
        city=party.city,
        state=party.state,
        pincode=party.pincode,
        phone_number=party.phone_number,
        gst_number=party.gst_number,
        created_by=party.created_by,
        created_at=party.created_at,
        updated_at=party.updated_at,
        user_profiles=_creator(party.creator),
    )


def _issue_token(codec: TokenCodec, user: User) -> str:
    return codec.issue(
        TokenClaims(user_id=user.id, phone=user.phone, role=Role(user.role))
    )


@app.get("/api/health", response_model=MessageResponse)
def health():
    return MessageResponse(message="Backend server is running!")


@app.get("/metrics", include_in_schema=False)
def metrics():
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# -- auth -------------------------------------------------------------------


@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
def register(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: TokenCodec = Depends(get_token_codec),
):
    """Create a ``user`` account and return a session token for it."""

    if not (payload.name and payload.phone and payload.password):
        raise ValidationError("All fields are required")
    if len(payload.password.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    # fast path only; the phone uniqueness constraint is authoritative
    if get_user_by_phone(db, payload.phone) is not None:
        raise DuplicateUser()

    user = create_user(
        db,
        name=payload.name,
        phone=payload.phone,
        password_hash=hasher.hash(payload.password),
    )
    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(codec, user),
        user=UserProfile.model_validate(user),
    )


@app.post("/api/auth/verify-user", response_model=AuthResponse)
@app.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
def login(
    request: Request,
    payload: LoginRequest,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: TokenCodec = Depends(get_token_codec),
):
    """Check phone and password; unknown phone and wrong password look alike."""

    if not (payload.phone and payload.password):
        raise ValidationError("Phone and password are required")

    user = get_user_by_phone(db, payload.phone)
    if user is None or not hasher.verify(payload.password, user.password_hash):
        logger.info("login rejected")
        raise InvalidCredentials()

    logger.info("login succeeded for user id=%s", user.id)
    return AuthResponse(
        message="Login successful",
        token=_issue_token(codec, user),
        user=UserProfile.model_validate(user),
    )


@app.get("/api/auth/profile", response_model=ProfileResponse)
def profile(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Return the caller's live profile record."""

    user = get_user_by_id(db, identity.id)
    if user is None:
        raise NotFound("User not found")
    return ProfileResponse(user=UserDetail.model_validate(user))


@app.get(
    "/api/auth/users",
    response_model=UserListResponse,
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def get_users(db: Session = Depends(get_db)):
    """List every user's public profile (admin only)."""

    return UserListResponse(
        users=[UserDetail.model_validate(u) for u in list_users(db)]
    )


@app.put("/api/auth/users/{user_id}/role", response_model=RoleUpdateResponse)
def put_user_role(
    user_id: int,
    payload: RoleUpdateRequest,
    identity: Identity = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    """Change a user's role (admin only).

    Tokens already issued keep their old role claim until they expire.
    """

    try:
        role = Role(payload.role)
    except ValueError:
        raise ValidationError(
            "Role must be one of: " + ", ".join(r.value for r in Role)
        ) from None

    user = update_user_role(db, user_id, role)
    if user is None:
        raise NotFound("User not found")
    logger.info("admin id=%s changed role of user id=%s", identity.id, user_id)
    return RoleUpdateResponse(
        message="User role updated successfully",
        user=UserDetail.model_validate(user),
    )


# -- designs ----------------------------------------------------------------


@app.get(
    "/api/designs/item-types",
    response_model=ItemTypeListResponse,
    dependencies=[Depends(get_current_identity)],
)
def get_item_types(db: Session = Depends(get_db)):
    return ItemTypeListResponse(
        itemTypes=[ItemTypeResponse.model_validate(t) for t in list_item_types(db)]
    )


@app.get(
    "/api/designs/colors",
    response_model=ColorListResponse,
    dependencies=[Depends(get_current_identity)],
)
def get_colors(db: Session = Depends(get_db)):
    return ColorListResponse(
        colors=[ColorResponse.model_validate(c) for c in list_colors(db)]
    )


@app.get(
    "/api/designs",
    response_model=DesignListResponse,
    dependencies=[Depends(get_current_identity)],
)
def get_designs(db: Session = Depends(get_db)):
    """Return all designs, newest first."""

    return DesignListResponse(designs=[serialize_design(d) for d in list_designs(db)])


@app.post("/api/designs", response_model=DesignCreateResponse, status_code=201)
def post_design(
    payload: DesignCreateRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Create one design row for each requested color."""

    if not (payload.design_number and payload.item_type_id and payload.color_ids):
        raise ValidationError(
            "Design number, item type, and at least one color are required"
        )

    designs = create_designs(
        db,
        design_number=payload.design_number,
        item_type_id=payload.item_type_id,
        color_ids=payload.color_ids,
        created_by=identity.id,
    )
    return DesignCreateResponse(
        message=f"Design created successfully with {len(payload.color_ids)} color(s)",
        designs=[serialize_design(d) for d in designs],
    )


@app.put(
    "/api/designs/{design_id}",
    response_model=DesignUpdateResponse,
    dependencies=[Depends(get_current_identity)],
)
def put_design(
    design_id: int,
    payload: DesignUpdateRequest,
    db: Session = Depends(get_db),
):
    if not (payload.design_number and payload.item_type_id and payload.color_id):
        raise ValidationError("Design number, item type, and color are required")

    design = update_design(
        db,
        design_id,
        design_number=payload.design_number,
        item_type_id=payload.item_type_id,
        color_id=payload.color_id,
    )
    if design is None:
        raise NotFound("Design not found or you do not have permission to update it")
    return DesignUpdateResponse(
        message="Design updated successfully", design=serialize_design(design)
    )


@app.delete(
    "/api/designs/{design_id}",
    response_model=MessageResponse,
    dependencies=[Depends(get_current_identity)],
)
def remove_design(
    design_id: int,
    db: Session = Depends(get_db),
):
    delete_design(db, design_id)
    return MessageResponse(message="Design deleted successfully")


# -- parties ----------------------------------------------------------------


@app.get(
    "/api/parties",
    response_model=PartyListResponse,
    dependencies=[Depends(get_current_identity)],
)
def get_parties(db: Session = Depends(get_db)):
    """Return all parties, newest first."""

    return PartyListResponse(parties=[serialize_party(p) for p in list_parties(db)])


@app.get(
    "/api/parties/{party_id}",
    response_model=PartyEnvelope,
    dependencies=[Depends(get_current_identity)],
)
def get_single_party(
    party_id: int,
    db: Session = Depends(get_db),
):
    party = get_party(db, party_id)
    if party is None:
        raise NotFound("Party not found")
    return PartyEnvelope(party=serialize_party(party))


@app.post("/api/parties", response_model=PartyMutationResponse, status_code=201)
def post_party(
    payload: PartyRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    if not payload.name:
        raise ValidationError("Party name is required")

    party = create_party(db, payload.model_dump(), created_by=identity.id)
    return PartyMutationResponse(
        message="Party created successfully", party=serialize_party(party)
    )


@app.put(
    "/api/parties/{party_id}",
    response_model=PartyMutationResponse,
    dependencies=[Depends(get_current_identity)],
)
def put_party(
    party_id: int,
    payload: PartyRequest,
    db: Session = Depends(get_db),
):
    if not payload.name:
        raise ValidationError("Party name is required")

    party = update_party(db, party_id, payload.model_dump())
    if party is None:
        raise NotFound("Party not found or you do not have permission to update it")
    return PartyMutationResponse(
        message="Party updated successfully", party=serialize_party(party)
    )


@app.delete(
    "/api/parties/{party_id}",
    response_model=MessageResponse,
    dependencies=[Depends(get_current_identity)],
)
def remove_party(
    party_id: int,
    db: Session = Depends(get_db),
):
    delete_party(db, party_id)
    return MessageResponse(message="Party deleted successfully")


# -- transport --------------------------------------------------------------


@app.get(
    "/api/transport",
    response_model=TransportListResponse,
    dependencies=[Depends(get_current_identity)],
)
def get_transport_options(db: Session = Depends(get_db)):
    """Return all transport options, newest first."""

    return TransportListResponse(
        transportOptions=[
            TransportResponse.model_validate(t) for t in list_transport_options(db)
        ]
    )


@app.get(
    "/api/transport/{transport_id}",
    response_model=TransportEnvelope,
    dependencies=[Depends(get_current_identity)],
)
def get_single_transport(
    transport_id: int,
    db: Session = Depends(get_db),
):
    transport = get_transport_option(db, transport_id)
    if transport is None:
        raise NotFound("Transport option not found")
    return TransportEnvelope(transport=TransportResponse.model_validate(transport))


@app.post(
    "/api/transport",
    response_model=TransportMutationResponse,
    status_code=201,
    dependencies=[Depends(get_current_identity)],
)
def post_transport(payload: TransportRequest, db: Session = Depends(get_db)):
    if not payload.transport_name:
        raise ValidationError("Transport name is required")

    transport = create_transport_option(db, payload.transport_name, payload.description)
    return TransportMutationResponse(
        message="Transport option created successfully",
        transport=TransportResponse.model_validate(transport),
    )


@app.put(
    "/api/transport/{transport_id}",
    response_model=TransportMutationResponse,
    dependencies=[Depends(get_current_identity)],
)
def put_transport(
    transport_id: int,
    payload: TransportRequest,
    db: Session = Depends(get_db),
):
    if not payload.transport_name:
        raise ValidationError("Transport name is required")

    transport = update_transport_option(
        db, transport_id, payload.transport_name, payload.description
    )
    if transport is None:
        raise NotFound("Transport option not found")
    return TransportMutationResponse(
        message="Transport option updated successfully",
        transport=TransportResponse.model_validate(transport),
    )


@app.delete(
    "/api/transport/{transport_id}",
    response_model=MessageResponse,
    dependencies=[Depends(get_current_identity)],
)
def remove_transport(
    transport_id: int,
    db: Session = Depends(get_db),
):
    delete_transport_option(db, transport_id)
    return MessageResponse(message="Transport option deleted successfully")
