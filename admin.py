import os

import streamlit as st

from app.core.config import settings
from app.core.errors import BookingServiceError
from app.services.db_service import RecordStore
from app.services.export_service import bookings_to_csv, bookings_to_dataframe

# Page Config
st.set_page_config(
    page_title="Bookings Admin",
    page_icon="📅",
    layout="centered"
)

st.title(f"{settings.PROJECT_NAME} - Admin Panel")


def load_data():
    # Read-only view: never create or write the store from the dashboard
    if not os.path.exists(settings.DB_PATH):
        return None

    store = RecordStore(settings.DB_PATH, read_only=True)
    try:
        store.open()
        return store.list_all()
    except BookingServiceError as e:
        st.error(f"Could not read bookings: {e}")
        return None
    finally:
        store.close()


if st.button("Refresh"):
    st.rerun()

records = load_data()

if records:
    df = bookings_to_dataframe(records)

    col1, col2 = st.columns(2)
    col1.metric("Bookings", len(df))
    col2.metric("Revenue", int(df["total"].sum()))

    st.subheader("All bookings")
    st.dataframe(
        df,
        use_container_width=True,
        column_config={
            "timestamp": "Booked at",
            "name": "Name",
            "email": "Email",
            "subjects": "Subjects",
            "total": "Total",
            "id": "ID"
        }
    )

    st.download_button(
        "Download CSV",
        data=bookings_to_csv(records),
        file_name="bookings.csv",
        mime="text/csv",
    )
else:
    st.info("No bookings yet, or the database does not exist.")

st.markdown("---")
st.caption(f"{settings.PROJECT_NAME} • store: {settings.DB_PATH}")
