# ============================================================
# main.py — FastAPI Application
# ============================================================
# Endpoints:
#   GET  /api/products            → Filtered catalogue (intent, q)
#   GET  /api/products/{id}       → One artifact
#   *    /api/cart...             → Cart ledger
#   *    /api/checkout...         → Checkout steps
#   *    /api/auth...             → Sign up / in / out
#   *    /api/profile, /api/onboarding...
#   POST /api/muse                → Gift ideas
#   *    /admin...                → Catalogue manager (HTML)
#
# Visitor flow:
#   1. First request → create SessionState, set cookie, start tracker
#   2. Requests mutate that session's cart / checkout / view
#   3. Shutdown → destroy sessions, releasing auth subscriptions
# ============================================================

import html
import logging
import uuid
from typing import Dict, List, Literal, Optional

from fastapi import FastAPI, Depends, HTTPException, Request, UploadFile, File
from fastapi.responses import HTMLResponse, FileResponse
from pydantic import BaseModel, EmailStr, Field
from starlette.responses import RedirectResponse

import config
from admin import AdminError, CatalogueEditor
from catalogue import CatalogueCache
from checkout import CheckoutError, CheckoutSequencer, PROCESSING
from constants import (
    ALL_INTENTS, DEFAULT_CARE, DEFAULT_COLOR, DEFAULT_MATERIALS, DEFAULT_PROCESS, INTENTS, PALETTE,
)
from database import init_db
from gateway import create_gateway
from identity import SessionTracker
from muse import get_gift_muse_suggestions
from profiles import ProfileError, fetch_profile, profile_form, save_profile
from session import (
    CustomizationState, SessionState, create_session, destroy_all_sessions, evict_idle_sessions, get_session,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fabino")

# ── Initialize FastAPI app ────────────────────────────────────
app = FastAPI(title="Fabino Studio")


# ── Startup: tables, gateway, catalogue ───────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    gateway = create_gateway()
    catalogue = CatalogueCache(gateway)
    catalogue.fetch()
    app.state.gateway = gateway
    app.state.catalogue = catalogue
    app.state.editor = CatalogueEditor(gateway, catalogue)
    logger.info("✅ Database initialized (live collection: %s)", catalogue.live)


@app.on_event("shutdown")
def on_shutdown():
    destroy_all_sessions()
    logger.info("👋 Sessions released")


# ============================================================
# Dependencies
# ============================================================

@app.middleware("http")
async def session_cookie(request: Request, call_next):
    """Hand out the cookie for a freshly created session, error responses included."""
    response = await call_next(request)
    session_id = getattr(request.state, "new_session_id", None)
    if session_id:
        response.set_cookie(config.SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


def get_visitor(request: Request) -> SessionState:
    """Resolve the visitor's session from the cookie, creating one if needed."""
    evict_idle_sessions(config.SESSION_IDLE_TIMEOUT)
    session_id = request.cookies.get(config.SESSION_COOKIE)
    session = get_session(session_id) if session_id else None
    if session is None:
        gateway = request.app.state.gateway
        session_id = str(uuid.uuid4())
        session = create_session(session_id, auth=gateway.auth_client())
        session.tracker = SessionTracker(session.auth, session, gateway).start()
        request.state.new_session_id = session_id
        logger.info("✅ Visitor session created: %s", session_id)
    return session


def get_catalogue(request: Request) -> CatalogueCache:
    return request.app.state.catalogue


def get_editor(request: Request) -> CatalogueEditor:
    return request.app.state.editor


def get_sequencer(request: Request, session: SessionState = Depends(get_visitor)) -> CheckoutSequencer:
    if session.checkout is None:
        session.checkout = CheckoutSequencer(session, request.app.state.gateway)
    return session.checkout


def require_user(session: SessionState = Depends(get_visitor)) -> SessionState:
    if not session.user:
        raise HTTPException(status_code=401, detail="Sign in required")
    return session


# ============================================================
# Request bodies
# ============================================================

class CustomizationIn(BaseModel):
    product_id: str
    text: str = Field("", max_length=40)
    color: str = DEFAULT_COLOR
    options: Dict[str, str] = {}


class ShippingIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None


class CredentialsIn(BaseModel):
    email: EmailStr
    password: str


class ProfileIn(BaseModel):
    first_name: str
    last_name: str
    address: str
    city: str
    postal_code: str
    phone: str = ""


class EditorIn(BaseModel):
    open: bool


class OnboardingIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    card_number: Optional[str] = None
    expiry: Optional[str] = None
    cvc: Optional[str] = None


class ViewIn(BaseModel):
    view: Literal["home", "product", "admin"]
    product_id: Optional[str] = None


class MuseIn(BaseModel):
    prompt: str


class ProductIn(BaseModel):
    name: str
    tagline: str = ""
    description: str = ""
    price: float = Field(0, ge=0)
    image: str = ""
    category: Literal["Birthday", "Anniversary", "Surprise", "Custom Gifts"]
    story: str = ""
    customizable_fields: List[str] = []
    materials: Optional[str] = None
    process: Optional[str] = None
    care: Optional[str] = None


# ============================================================
# ENDPOINTS: Catalogue
# ============================================================

def product_detail(product: dict) -> dict:
    """Fill in the studio's default material & care copy."""
    return {
        **product,
        "materials": product.get("materials") or DEFAULT_MATERIALS,
        "process": product.get("process") or DEFAULT_PROCESS,
        "care": product.get("care") or DEFAULT_CARE,
    }


@app.get("/api/products")
def list_products(intent: str = ALL_INTENTS, q: str = "",
                  catalogue: CatalogueCache = Depends(get_catalogue)):
    """Return the catalogue filtered by intent and search text."""
    if intent != ALL_INTENTS and intent not in INTENTS:
        raise HTTPException(status_code=400, detail=f"Unknown intent '{intent}'")

    products = list(catalogue.filter(intent, q))
    empty_message = None
    if not products:
        empty_message = (
            f'No artifacts found matching "{q}"' if q
            else "The collection is currently evolving. Check back soon."
        )
    return {
        "live": catalogue.live,
        "loading": catalogue.loading,
        "intent": intent,
        "q": q,
        "count": len(products),
        "products": products,
        "emptyMessage": empty_message,
    }


@app.get("/api/products/{product_id}")
def get_product(product_id: str, catalogue: CatalogueCache = Depends(get_catalogue)):
    product = catalogue.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return product_detail(product)


@app.get("/api/intents")
def get_intents():
    return {"intents": [ALL_INTENTS, *INTENTS], "palette": PALETTE}


@app.get("/api/catalogue/status")
def catalogue_status(catalogue: CatalogueCache = Depends(get_catalogue)):
    return {"live": catalogue.live, "loading": catalogue.loading, "count": len(catalogue.products)}


@app.post("/api/catalogue/refresh")
def refresh_catalogue(catalogue: CatalogueCache = Depends(get_catalogue)):
    catalogue.fetch()
    return {"live": catalogue.live, "count": len(catalogue.products)}


# ============================================================
# ENDPOINTS: Navigation
# ============================================================

@app.get("/api/view")
def current_view(session: SessionState = Depends(get_visitor)):
    return session.view_dict()


@app.post("/api/view")
def navigate(body: ViewIn, session: SessionState = Depends(get_visitor),
             catalogue: CatalogueCache = Depends(get_catalogue)):
    if body.view == "product":
        if not body.product_id or not catalogue.get(body.product_id):
            raise HTTPException(status_code=404, detail="Artifact not found")
    session.navigate(body.view, body.product_id)
    return session.view_dict()


# ============================================================
# ENDPOINTS: Cart
# ============================================================

@app.get("/api/cart")
def get_cart(session: SessionState = Depends(get_visitor)):
    return session.cart_dict()


@app.post("/api/cart")
def add_to_cart(body: CustomizationIn, session: SessionState = Depends(get_visitor),
                catalogue: CatalogueCache = Depends(get_catalogue)):
    product = catalogue.get(body.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Artifact not found")
    try:
        customization = CustomizationState(text=body.text, color=body.color, options=body.options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    item = session.cart.add(customization, product)
    return {**session.cart_dict(), "added": item.to_dict(), "message": "Artifact added to your cart"}


@app.post("/api/cart/buy-now/{product_id}")
def buy_now(product_id: str, session: SessionState = Depends(get_visitor),
            catalogue: CatalogueCache = Depends(get_catalogue),
            sequencer: CheckoutSequencer = Depends(get_sequencer)):
    """Add a standard edition and open checkout."""
    product = catalogue.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Artifact not found")
    item = session.cart.add_standard(product)
    return {**session.cart_dict(), "added": item.to_dict(), "checkout": sequencer.to_dict()}


@app.delete("/api/cart/{cart_id}")
def remove_from_cart(cart_id: str, session: SessionState = Depends(get_visitor)):
    session.cart.remove(cart_id)
    return session.cart_dict()


@app.delete("/api/cart")
def clear_cart(session: SessionState = Depends(get_visitor)):
    session.cart.clear()
    return session.cart_dict()


# ============================================================
# ENDPOINTS: Checkout
# ============================================================

def _checkout_error(e: CheckoutError):
    return HTTPException(status_code=400, detail=str(e))


@app.get("/api/checkout")
def checkout_state(sequencer: CheckoutSequencer = Depends(get_sequencer)):
    return sequencer.to_dict()


@app.put("/api/checkout/shipping")
def update_shipping(body: ShippingIn, sequencer: CheckoutSequencer = Depends(get_sequencer)):
    try:
        for name, value in body.model_dump(exclude_none=True).items():
            sequencer.update(name, value)
    except CheckoutError as e:
        raise _checkout_error(e)
    return sequencer.to_dict()


@app.post("/api/checkout/payment")
def continue_to_payment(sequencer: CheckoutSequencer = Depends(get_sequencer)):
    try:
        sequencer.continue_to_payment()
    except CheckoutError as e:
        raise _checkout_error(e)
    return sequencer.to_dict()


@app.post("/api/checkout/back")
def checkout_back(sequencer: CheckoutSequencer = Depends(get_sequencer)):
    try:
        sequencer.back()
    except CheckoutError as e:
        raise _checkout_error(e)
    return sequencer.to_dict()


@app.post("/api/checkout/complete")
async def complete_purchase(sequencer: CheckoutSequencer = Depends(get_sequencer)):
    if sequencer.step == PROCESSING:
        raise HTTPException(status_code=409, detail="Checkout already processing")
    try:
        return await sequencer.complete()
    except CheckoutError as e:
        raise _checkout_error(e)


@app.post("/api/checkout/exit")
def exit_checkout(session: SessionState = Depends(get_visitor),
                  sequencer: CheckoutSequencer = Depends(get_sequencer)):
    try:
        sequencer.exit()
    except CheckoutError as e:
        raise _checkout_error(e)
    session.checkout = None
    return session.view_dict()


# ============================================================
# ENDPOINTS: Auth
# ============================================================

@app.post("/api/auth/signup")
def sign_up(body: CredentialsIn, session: SessionState = Depends(get_visitor)):
    result = session.auth.sign_up(body.email, body.password)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error.message)
    return session.view_dict()


@app.post("/api/auth/signin")
def sign_in(body: CredentialsIn, session: SessionState = Depends(get_visitor)):
    result = session.auth.sign_in_with_password(body.email, body.password)
    if not result.ok:
        raise HTTPException(status_code=401, detail=result.error.message)
    return session.view_dict()


@app.post("/api/auth/signout")
def sign_out(session: SessionState = Depends(get_visitor)):
    session.auth.sign_out()
    return session.view_dict()


@app.get("/api/auth/session")
def auth_session(session: SessionState = Depends(get_visitor)):
    return {"user": session.user}


# ============================================================
# ENDPOINTS: Profile & onboarding
# ============================================================

@app.get("/api/profile")
def get_profile(request: Request, session: SessionState = Depends(require_user)):
    try:
        profile = fetch_profile(request.app.state.gateway, session.user_id)
    except ProfileError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return profile_form(profile)


@app.put("/api/profile")
def update_profile(body: ProfileIn, request: Request, session: SessionState = Depends(require_user)):
    try:
        save_profile(request.app.state.gateway, session.user_id, body.model_dump())
    except ProfileError as e:
        raise HTTPException(status_code=400, detail=f"Failed to update profile: {e}")
    session.profile_editor_open = False
    return {"updated": True, "message": "Vault Profile Updated"}


@app.post("/api/profile/editor")
def toggle_profile_editor(body: EditorIn, session: SessionState = Depends(require_user)):
    session.profile_editor_open = body.open
    return session.view_dict()


def _wizard(session: SessionState):
    if session.onboarding is None:
        raise HTTPException(status_code=404, detail="No onboarding in progress")
    return session.onboarding


@app.get("/api/onboarding")
def onboarding_state(session: SessionState = Depends(get_visitor)):
    return _wizard(session).to_dict()


@app.put("/api/onboarding")
def onboarding_update(body: OnboardingIn, session: SessionState = Depends(get_visitor)):
    wizard = _wizard(session)
    for name, value in body.model_dump(exclude_none=True).items():
        wizard.update(name, value)
    return wizard.to_dict()


@app.post("/api/onboarding/next")
def onboarding_next(session: SessionState = Depends(get_visitor)):
    wizard = _wizard(session)
    wizard.next()
    return wizard.to_dict()


@app.post("/api/onboarding/back")
def onboarding_back(session: SessionState = Depends(get_visitor)):
    wizard = _wizard(session)
    wizard.back()
    return wizard.to_dict()


@app.post("/api/onboarding/submit")
def onboarding_submit(session: SessionState = Depends(get_visitor)):
    wizard = _wizard(session)
    saved = wizard.submit()
    session.onboarding = None
    session.navigate("home")
    return {"saved": saved, "message": "Welcome to Fabino Studio", **session.view_dict()}


# ============================================================
# ENDPOINT: Artifact Muse
# ============================================================

@app.post("/api/muse")
def muse(body: MuseIn):
    return {"suggestions": get_gift_muse_suggestions(body.prompt)}


# ============================================================
# ENDPOINTS: Admin JSON API
# ============================================================

def _admin_error(e: AdminError):
    return HTTPException(
        status_code=400,
        detail={"message": e.message, "showConfigGuide": e.show_config_guide},
    )


@app.post("/api/admin/products", status_code=201)
def api_create_product(body: ProductIn, editor: CatalogueEditor = Depends(get_editor)):
    try:
        return editor.create_product(body.model_dump())
    except AdminError as e:
        raise _admin_error(e)


@app.put("/api/admin/products/{product_id}")
def api_update_product(product_id: str, body: ProductIn, editor: CatalogueEditor = Depends(get_editor)):
    try:
        return editor.update_product(product_id, body.model_dump())
    except AdminError as e:
        raise _admin_error(e)


@app.delete("/api/admin/products/{product_id}")
def api_delete_product(product_id: str, editor: CatalogueEditor = Depends(get_editor)):
    try:
        editor.delete_product(product_id)
    except AdminError as e:
        raise _admin_error(e)
    return {"deleted": product_id}


@app.post("/api/admin/images", status_code=201)
async def api_upload_image(image: UploadFile = File(...), editor: CatalogueEditor = Depends(get_editor)):
    data = await image.read()
    try:
        url = editor.upload_image(image.filename, data, image.content_type)
    except AdminError as e:
        raise _admin_error(e)
    return {"url": url}


# ============================================================
# ENDPOINT: Stored objects
# ============================================================

@app.get("/storage/{bucket}/{path:path}")
def stored_object(bucket: str, path: str, request: Request):
    local = request.app.state.gateway.storage.from_(bucket).local_path(path)
    if local is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return FileResponse(local)


# ============================================================
# ADMIN: HTML catalogue manager
# ============================================================

CONFIG_GUIDE = f"""
<div style="border:1px solid #d4af37; padding:10px; margin:10px 0;">
  <b>Storage setup</b><br>
  Create a public bucket named "{config.STORAGE_BUCKET}" under STORAGE_DIR
  ({html.escape(config.STORAGE_DIR)}) and make sure the service can write to it.
</div>
"""


def _esc(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def _product_form(action: str, title: str, button: str, p: Optional[dict] = None, error: str = "",
                  guide: bool = False) -> str:
    p = p or {}
    fields = p.get("customizable_fields") or []
    if not isinstance(fields, str):
        fields = ", ".join(fields)
    category_options = "".join([
        f"<option value='{c}' {'selected' if p.get('category') == c else ''}>{c}</option>"
        for c in INTENTS
    ])
    current_image = (
        f"Current Image:<br><img src='{_esc(p.get('image'))}' width='120'><br>" if p.get("image") else ""
    )
    return f"""
    <h2>{title}</h2>
    {f"<p style='color:#b00'>{_esc(error)}</p>" if error else ""}
    {CONFIG_GUIDE if guide else ""}
    <form method="post" action="{action}" enctype="multipart/form-data">
        Name: <input name="name" value="{_esc(p.get('name'))}"><br>
        Tagline: <input name="tagline" value="{_esc(p.get('tagline'))}"><br>
        Category: <select name="category">{category_options}</select><br>
        Price: <input name="price" value="{_esc(p.get('price', 0))}"><br>
        Customizable Fields (comma): <input name="customizable_fields"
            value="{_esc(fields)}"><br>
        Image URL: <input name="image" value="{_esc(p.get('image'))}"><br>
        {current_image}
        Upload Image: <input type="file" name="upload"><br>
        Description: <textarea name="description">{_esc(p.get('description'))}</textarea><br>
        Story: <textarea name="story">{_esc(p.get('story'))}</textarea><br>
        Materials: <textarea name="materials">{_esc(p.get('materials'))}</textarea><br>
        Process: <textarea name="process">{_esc(p.get('process'))}</textarea><br>
        Care: <textarea name="care">{_esc(p.get('care'))}</textarea><br>
        <button type="submit">{button}</button>
    </form>
    """


@app.get("/admin", response_class=HTMLResponse)
def admin_home(intent: str = None, catalogue: CatalogueCache = Depends(get_catalogue)):
    """
    Admin dashboard with intent filtering.
    Query params: ?intent=Birthday
    """
    products = list(catalogue.filter(intent or ALL_INTENTS))

    rows = "".join([
        f"<tr><td>{_esc(p.get('id'))}</td><td>{_esc(p.get('name'))}</td><td>{_esc(p.get('category'))}</td>"
        f"<td>{_esc(p.get('price'))}</td>"
        f"<td><img src='{_esc(p.get('image'))}' width='60'></td>"
        f"<td><a href='/admin/edit/{_esc(p.get('id'))}'>Edit</a> | "
        f"<a href='/admin/delete/{_esc(p.get('id'))}'>Delete</a></td></tr>"
        for p in products
    ])

    intent_options = "".join([
        f"<option value='{c}' {'selected' if intent == c else ''}>{c}</option>"
        for c in INTENTS
    ])

    source = "Live Collection" if catalogue.live else "Bundled Collection (backend unreachable or empty)"

    return f"""
    <h1>Admin - Artifact Management</h1>
    <p>{source}</p>
    <a href="/admin/new">➕ Add Artifact</a>

    <div style="margin: 15px 0;">
        <label for="intent-filter">Filter by Occasion:</label>
        <select id="intent-filter" onchange="applyFilter()">
            <option value="">-- All Occasions --</option>
            {intent_options}
        </select>
    </div>

    <table border="1" cellpadding="6">
        <tr><th>ID</th><th>Name</th><th>Occasion</th><th>Price</th><th>Image</th><th>Actions</th></tr>
        {rows}
    </table>

    <script>
        function applyFilter() {{
            const selected = document.getElementById('intent-filter').value;
            window.location.href = selected ? `/admin?intent=${{encodeURIComponent(selected)}}` : '/admin';
        }}
    </script>
    """


@app.get("/admin/new", response_class=HTMLResponse)
def new_product_form():
    return _product_form("/admin/new", "Add Artifact", "Save")


async def _form_payload(request: Request) -> dict:
    form = await request.form()
    payload = {
        key: form.get(key)
        for key in ("name", "tagline", "description", "price", "image", "category", "story",
                    "customizable_fields", "materials", "process", "care")
        if form.get(key) is not None
    }
    return payload


async def _form_image(upload: Optional[UploadFile]):
    if upload is None or not upload.filename:
        return None
    return upload.filename, await upload.read(), upload.content_type


@app.post("/admin/new")
async def create_product(request: Request, upload: UploadFile = File(None),
                         editor: CatalogueEditor = Depends(get_editor)):
    payload = await _form_payload(request)
    try:
        editor.create_product(payload, image=await _form_image(upload))
    except AdminError as e:
        return HTMLResponse(
            _product_form("/admin/new", "Add Artifact", "Save", payload, e.message, e.show_config_guide),
            status_code=400,
        )
    return RedirectResponse("/admin", status_code=303)


@app.get("/admin/edit/{product_id}", response_class=HTMLResponse)
def edit_product_form(product_id: str, catalogue: CatalogueCache = Depends(get_catalogue)):
    p = catalogue.get(product_id)
    if not p:
        return HTMLResponse("Not found", status_code=404)
    return _product_form(f"/admin/edit/{_esc(product_id)}", "Edit Artifact", "Update", p)


@app.post("/admin/edit/{product_id}")
async def update_product(product_id: str, request: Request, upload: UploadFile = File(None),
                         editor: CatalogueEditor = Depends(get_editor)):
    payload = await _form_payload(request)
    try:
        editor.update_product(product_id, payload, image=await _form_image(upload))
    except AdminError as e:
        return HTMLResponse(
            _product_form(f"/admin/edit/{_esc(product_id)}", "Edit Artifact", "Update", payload,
                          e.message, e.show_config_guide),
            status_code=400,
        )
    return RedirectResponse("/admin", status_code=303)


@app.get("/admin/delete/{product_id}")
def delete_product(product_id: str, editor: CatalogueEditor = Depends(get_editor)):
    try:
        editor.delete_product(product_id)
    except AdminError as e:
        return HTMLResponse(f"Delete failed: {_esc(e.message)}", status_code=400)
    return RedirectResponse("/admin", status_code=303)


# ============================================================
# RUN THE APP
# ============================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
