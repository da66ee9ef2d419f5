"""
Console admin (Streamlit) : stock, import Excel, réservations.

Ne parle qu'à l'API REST : toute écriture stock passe par le coordinateur.

    streamlit run dashboard.py
"""

import pandas as pd
import plotly.graph_objects as go
import requests
import streamlit as st

from stockres.app.core.config import settings
from stockres.app.core.errors import InvalidArgumentError
from stockres.services.importer import read_product_sheet

API = f"{settings.api_base_url}/api"
STATUSES = ["pending", "confirmed", "cancelled", "completed"]

st.set_page_config(page_title="Stock Reservation - Admin", layout="wide", page_icon="📦")


def call(method, path, **kwargs):
    """Returns (data, error message or None). N'affiche rien : utilisable dans un callback."""
    try:
        resp = requests.request(method, f"{API}{path}", timeout=10, **kwargs)
    except requests.RequestException as exc:
        return None, f"API unreachable: {exc}"
    try:
        data = resp.json()
    except ValueError:
        return None, f"unexpected API response ({resp.status_code})"
    if not data.get("ok", False):
        msg = data.get("error", "request failed")
        if "available" in data:
            msg += f" (available: {data['available']})"
        return data, msg
    return data, None


def api(method, path, **kwargs):
    data, error = call(method, path, **kwargs)
    if error:
        st.error(error)
        if data is None:
            st.stop()
    return data


st.title("📦 Stock Reservation - Admin")

# --- SIDEBAR : import / export / base ---
with st.sidebar:
    st.header("📥 IMPORT")
    uploaded = st.file_uploader("Stock file (.xlsx / .csv)", type=["xlsx", "csv"])
    if uploaded is not None and st.button("Import"):
        try:
            rows = read_product_sheet(uploaded, uploaded.name)
        except InvalidArgumentError as exc:
            st.error(exc.message)
        else:
            res = api("POST", "/products/bulk", json=rows)
            if res.get("ok"):
                st.success(res["message"])

    st.divider()
    st.header("📤 EXPORT")
    # CSV générés à la demande par l'API
    st.link_button("Products CSV", f"{API}/products/export")
    st.link_button("Reservations CSV", f"{API}/reservations/export")

    st.divider()
    st.header("🗄️ DATABASE")
    if st.button("Reset + sample data"):
        api("POST", "/database/create")
    if st.button("Clear all data"):
        api("DELETE", "/database/delete")

# --- STOCK ---
products = pd.DataFrame(api("GET", "/products").get("items", []))

st.subheader("Stock")
if products.empty:
    st.info("No products yet.")
else:
    st.dataframe(products[["sku", "name", "category", "price", "quantity"]], use_container_width=True)

    fig = go.Figure()
    fig.add_trace(go.Bar(x=products["sku"], y=products["quantity"], name="Available", marker_color="#00ffcc"))
    fig.update_layout(
        template="plotly_dark",
        height=350,
        margin=dict(l=20, r=20, t=30, b=20),
    )
    st.plotly_chart(fig, use_container_width=True)

# --- NEW RESERVATION ---
st.subheader("New reservation")
if not products.empty:
    with st.form("new_reservation"):
        c1, c2, c3 = st.columns(3)
        sku = c1.selectbox("Product", products["sku"].tolist())
        customer = c2.text_input("Customer name")
        sales_person = c3.text_input("Sales person")
        c4, c5, c6 = st.columns(3)
        qty = c4.number_input("Quantity", min_value=1, value=1, step=1)
        discount = c5.number_input("Discount", min_value=0.0, value=0.0)
        vat = c6.checkbox("VAT", value=True)
        if st.form_submit_button("Reserve"):
            res = api(
                "POST",
                "/reservations",
                json={
                    "product_sku": sku,
                    "customer_name": customer,
                    "reserved_quantity": int(qty),
                    "sales_person": sales_person,
                    "discount": discount,
                    "vat": vat,
                },
            )
            if res.get("ok"):
                st.success(f"Reservation #{res['id']} created")

# --- RESERVATIONS ---
def on_status_change(rid):
    _, error = call("PUT", f"/reservations/{rid}/status", json={"status": st.session_state[f"status_{rid}"]})
    if error:
        # le widget est resynchronisé sur la valeur serveur au prochain rendu
        st.session_state.flash = f"#{rid}: {error}"


def on_quantity_change(rid):
    _, error = call("PUT", f"/reservations/{rid}", json={"reserved_quantity": int(st.session_state[f"qty_{rid}"])})
    if error:
        st.session_state.flash = f"#{rid}: {error}"


def on_delete(rid):
    _, error = call("DELETE", f"/reservations/{rid}")
    if error:
        st.session_state.flash = f"#{rid}: {error}"


st.subheader("Reservations")
if "flash" in st.session_state:
    st.error(st.session_state.pop("flash"))

reservations = api("GET", "/reservations").get("items", [])
if not reservations:
    st.info("No reservations.")

for r in reservations:
    rid = r["id"]
    # valeurs serveur -> widgets (avant leur création)
    st.session_state[f"status_{rid}"] = r["status"]
    st.session_state[f"qty_{rid}"] = int(r["reserved_quantity"])

    with st.container():
        c1, c2, c3, c4 = st.columns([3, 2, 3, 2])
        c1.markdown(f"**#{rid}** {r['product_sku']} · {r['product_name'] or ''}  \n{r['customer_name']}")
        c2.metric("Qty", r["reserved_quantity"])
        c2.caption(f"Total {r['total']:,.2f}")

        c3.selectbox("Status", STATUSES, key=f"status_{rid}", on_change=on_status_change, args=(rid,))
        if r["status"] == "pending":
            c3.number_input("Quantity", min_value=1, step=1, key=f"qty_{rid}", on_change=on_quantity_change, args=(rid,))

        # PDF généré à la demande par l'API
        c4.link_button("📄 Quote", f"{API}/reservations/{rid}/quote")
        c4.button("🗑️ Delete", key=f"del_{rid}", on_click=on_delete, args=(rid,))
