from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import streamlit as st
from mplsoccer import Pitch

from eventsync.categories import category_color, category_instructions, category_name, event_category
from eventsync.config import SyncConfig
from eventsync.engine import AlignmentEngine
from eventsync.errors import PersistenceError, ResultsFormatError, StoreError
from eventsync.io import MatchFiles
from eventsync.process import process_match
from eventsync.results import dumps_results, export_filename, loads_results
from eventsync.schemas import EventRow, FrameView, Metadata
from eventsync.store import DirectoryResultsStore, Record, clear_all, has_stored_data, save_match

CFG = SyncConfig.from_env()

# -----------------------------------------------------------------------------
# Page config + header
# -----------------------------------------------------------------------------
st.set_page_config(page_title="Event Tracking Sync", layout="wide")
st.title("Event Tracking Sync")
st.caption("Step through events, scrub the tracking frames, and confirm the instant each event happened.")


def _store() -> DirectoryResultsStore:
    return DirectoryResultsStore(CFG.store_dir)


def _engine() -> Optional[AlignmentEngine]:
    return st.session_state.get("engine")


def _metadata() -> Metadata:
    md = st.session_state.get("metadata")
    if md is None:
        md = _store().load(Record.METADATA) or Metadata(game_uuid="unknown")
        st.session_state["metadata"] = md
    return md


def _run(action, *args) -> None:
    # every engine mutation goes through here so a failed write is shown, not lost
    try:
        action(*args)
    except PersistenceError as e:
        st.session_state["persist_error"] = str(e)
    else:
        eng = _engine()
        if eng is not None and not eng.pending_write:
            st.session_state.pop("persist_error", None)


def _reset(store: DirectoryResultsStore) -> None:
    clear_all(store)
    for k in ("engine", "metadata", "persist_error"):
        st.session_state.pop(k, None)
    st.rerun()


def _on_slider() -> None:
    eng = _engine()
    if eng is not None:
        eng.set_offset(int(st.session_state["offset_slider"]))


def _team_color(team_id: Optional[int], meta: Metadata) -> str:
    if team_id is not None and meta.team_ids and team_id == meta.team_ids[0]:
        return "#1f77b4"
    if team_id is not None and len(meta.team_ids) > 1 and team_id == meta.team_ids[1]:
        return "#d62728"
    return "#7f7f7f"


def plot_frame(frame: FrameView, event: EventRow, meta: Metadata):
    pitch = Pitch(pitch_type="opta", line_zorder=2)
    fig, ax = pitch.draw(figsize=(10, 6.5))

    for r in frame.rows:
        if r.pos_x is None or r.pos_y is None:
            continue
        if r.is_ball:
            ax.scatter(r.pos_x, r.pos_y, s=70, c="orange", edgecolors="black", zorder=11)
            continue
        color = _team_color(r.team_opta_id, meta)
        highlight = r.team_opta_id == event.team_id and r.jersey_no is not None and r.jersey_no == event.jersey_no
        ax.scatter(
            r.pos_x,
            r.pos_y,
            s=240 if highlight else 160,
            c=color,
            edgecolors="black" if highlight else "white",
            linewidths=2 if highlight else 1,
            zorder=6,
        )
        if r.jersey_no is not None:
            ax.text(r.pos_x, r.pos_y, str(r.jersey_no), fontsize=7, ha="center", va="center", color="white", zorder=7)

    ev_color = category_color(event_category(event.event_type_id))
    if event.x is not None and event.y is not None:
        if event.pass_end_x is not None and event.pass_end_y is not None:
            pitch.arrows(
                event.x, event.y, event.pass_end_x, event.pass_end_y,
                ax=ax, color=ev_color, width=2, alpha=0.7, zorder=8,
            )
        ax.scatter(event.x, event.y, s=320, marker="X", c=ev_color, edgecolors="black", zorder=9)

    return fig


# -----------------------------------------------------------------------------
# Upload (no stored session)
# -----------------------------------------------------------------------------
store = _store()

if _engine() is None and has_stored_data(store):
    try:
        st.session_state["engine"] = AlignmentEngine.from_store(store, config=CFG)
    except StoreError as e:
        st.error(f"The stored session could not be loaded: {e}")
        st.caption("Reset the session to start over. Download anything you still need from the store folder first.")
        if st.button("Reset all data"):
            _reset(store)
        st.stop()

if _engine() is None:
    st.subheader("Upload parquet files")
    c1, c2 = st.columns(2)
    tracking_file = c1.file_uploader("Tracking data", type=["parquet"])
    events_file = c2.file_uploader("Events data", type=["parquet"])

    if st.button("Start syncing", disabled=not (tracking_file and events_file)):
        mf = MatchFiles(
            files={
                f"tracking_{tracking_file.name.replace('tracking_', '')}": tracking_file.getvalue(),
                f"events_{events_file.name.replace('events_', '')}": events_file.getvalue(),
            }
        )
        try:
            with st.spinner("Processing files..."):
                pm = process_match(mf, CFG)
                save_match(store, pm)
        except (ValueError, OSError) as e:
            st.error(f"Failed to load files: {e}")
            st.stop()
        st.session_state["engine"] = AlignmentEngine(pm.events, pm.tracking, {}, store=store, config=CFG)
        st.session_state["metadata"] = pm.metadata
        st.rerun()
    st.stop()

engine = _engine()
meta = _metadata()

# -----------------------------------------------------------------------------
# Sidebar: progress, results import/export, reset
# -----------------------------------------------------------------------------
with st.sidebar:
    st.subheader("Progress")
    st.progress(engine.synced_count / max(engine.num_events, 1))
    st.caption(f"{engine.synced_count:,} / {engine.num_events:,} events synced")

    jump_to = st.number_input("Jump to event", min_value=0, max_value=max(engine.num_events - 1, 0), value=min(engine.current_event_index, max(engine.num_events - 1, 0)), step=1)
    st.button("Go", on_click=_run, args=(engine.jump, int(jump_to)))
    st.button("Next unsynced", on_click=_run, args=(engine.skip_to_next_unsynced,))

    st.subheader("Results")
    st.download_button(
        "Download results JSON",
        data=dumps_results(engine.export_results()),
        file_name=export_filename(meta),
        mime="application/json",
    )
    upload = st.file_uploader("Upload results JSON (replaces current results)", type=["json"])
    if upload is not None and st.button("Replace results"):
        try:
            results = loads_results(upload.getvalue().decode("utf-8"))
        except (ResultsFormatError, UnicodeDecodeError) as e:
            st.error(f"Failed to upload JSON: {e}")
        else:
            _run(engine.import_results, results)
            st.rerun()

    st.subheader("Danger zone")
    if st.checkbox("I want to delete all stored data"):
        if st.button("Reset all data"):
            _reset(store)

if "persist_error" in st.session_state:
    st.error(f"{st.session_state['persist_error']} Any further action retries the save.")

# -----------------------------------------------------------------------------
# Main: current event
# -----------------------------------------------------------------------------
if engine.is_complete:
    st.success(f"All events processed: {engine.synced_count:,} of {engine.num_events:,} synced.")
    st.button("Back to last event", on_click=_run, args=(engine.jump, engine.num_events - 1))
    st.stop()

event = engine.current_event()
frame = engine.current_frame()
category = event_category(event.event_type_id)

desc = f" ({event.event_type_desc})" if event.event_type_desc else ""
st.markdown(
    f"**Event {engine.current_event_index + 1} / {engine.num_events}** | id `{event.event_id}` | "
    f"period {event.period_id} | nominal {event.matched_time} ms | "
    f"team {event.team_id} #{event.jersey_no if event.jersey_no is not None else '?'}"
)
with st.expander(f"💡 {category_name(category)}{desc}", expanded=False):
    for line in category_instructions(category):
        st.markdown(line)

if engine.is_synced(engine.current_event_index):
    st.info(f"Already synced at {engine.results[event.event_id]} ms. Confirming again replaces it.")

if not frame.has_tracking:
    st.warning("No tracking data for this period. Skip this event.")
else:
    st.caption(f"Frame {frame.frame_index + 1} / {frame.total_frames} | time {frame.time} ms | offset {engine.frame_offset:+d}")

fig = plot_frame(frame, event, meta)
st.pyplot(fig, use_container_width=True)
plt.close(fig)

prev_time = engine.previous_synced_time()
b1, b2, b3, b4, b5 = st.columns(5)
b1.button("⏪ Prev", on_click=_run, args=(engine.prev_event,))
b2.button("✓ Sync & Next", on_click=_run, args=(engine.confirm_current,), disabled=not frame.has_tracking, type="primary")
b3.button(
    "⏮ Sync to previous",
    on_click=_run,
    args=(engine.confirm_previous,),
    disabled=prev_time is None,
    help=f"Sync to {prev_time} ms" if prev_time is not None else "No previous event synced",
)
b4.button("⏭ Skip", on_click=_run, args=(engine.skip,))
b5.button("Next ⏩", on_click=_run, args=(engine.next_event,))

# -----------------------------------------------------------------------------
# Frame navigation
# -----------------------------------------------------------------------------
st.session_state["offset_slider"] = engine.display_offset()
st.slider(
    "Frame offset",
    min_value=CFG.min_offset,
    max_value=CFG.max_offset,
    step=1,
    key="offset_slider",
    on_change=_on_slider,
    disabled=not frame.has_tracking,
)
s1, s2, s3, s4 = st.columns(4)
s1.button("-10", on_click=engine.adjust_offset, args=(-10,), disabled=not frame.has_tracking)
s2.button("-1", on_click=engine.adjust_offset, args=(-1,), disabled=not frame.has_tracking)
s3.button("+1", on_click=engine.adjust_offset, args=(1,), disabled=not frame.has_tracking)
s4.button("+10", on_click=engine.adjust_offset, args=(10,), disabled=not frame.has_tracking)
