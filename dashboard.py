#!/usr/bin/env python3
"""
Rimuru Dashboard - agent activity, sessions and costs at a glance.

Single-file Flask app serving the dashboard page and its JSON API. Data comes
from whatever the Rimuru backend exported into the data directory.

Usage:
    rimuru-dashboard                          # ~/.rimuru, port 8910
    rimuru-dashboard --port 9000              # Custom port
    rimuru-dashboard --data-dir ~/exports     # Custom data directory
    RIMURU_TOKEN=secret rimuru-dashboard      # Require a bearer token

MIT License
"""

import argparse
import logging
import sys

from flask import Flask, jsonify, make_response, render_template_string, request

from rimuru import __version__
from rimuru.config import DashboardConfig
from rimuru.heatmap import build_heatmap
from rimuru.overlay import CooperativeScheduler, OverlayRegistry
from rimuru.providers import init_providers
from rimuru.table import SortState
from rimuru.views import session_table

logger = logging.getLogger("rimuru.dashboard")

app = Flask(__name__)

# ── Runtime state (set by configure()) ──────────────────────────────────
CONFIG = DashboardConfig()
PROVIDER = None
SCHEDULER = CooperativeScheduler()
OVERLAYS = OverlayRegistry(SCHEDULER)


def configure(config=None, provider=None, scheduler=None):
    """Install config, provider and fresh overlay state. Safe to call again (tests)."""
    global CONFIG, PROVIDER, SCHEDULER, OVERLAYS
    CONFIG = config or DashboardConfig.from_env()
    PROVIDER = provider or init_providers(CONFIG.data_dir, CONFIG.provider)
    OVERLAYS.destroy_all()
    SCHEDULER = scheduler or CooperativeScheduler()
    OVERLAYS = OverlayRegistry(SCHEDULER, default_duration_ms=CONFIG.overlay_duration_ms)
    return app


@app.before_request
def _ensure_configured():
    if PROVIDER is None:
        configure()


def _bad_request(msg):
    return jsonify({'error': msg}), 400


def _not_found(msg):
    return jsonify({'error': msg}), 404


# ── Auth ────────────────────────────────────────────────────────────────

def _request_token():
    token = request.headers.get('Authorization', '').replace('Bearer ', '').strip()
    if not token:
        token = request.args.get('token', '').strip()
    return token


@app.route('/api/auth/check')
def api_auth_check():
    """Check if auth is required and validate token."""
    if not CONFIG.auth_token:
        return jsonify({'authRequired': False, 'valid': True})
    return jsonify({'authRequired': True, 'valid': _request_token() == CONFIG.auth_token})


@app.before_request
def _check_auth():
    """Require the configured token for all /api/* routes except the auth check."""
    if request.path == '/api/auth/check':
        return
    if not request.path.startswith('/api/'):
        return  # HTML page is fine
    if not CONFIG.auth_token:
        return
    if _request_token() == CONFIG.auth_token:
        return
    return jsonify({'error': 'Unauthorized', 'authRequired': True}), 401


# ── Pages ───────────────────────────────────────────────────────────────

@app.route('/')
def index():
    resp = make_response(render_template_string(DASHBOARD_HTML, version=__version__))
    resp.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    return resp


@app.route('/api/health')
def api_health():
    return jsonify({'ok': True, 'version': __version__, 'provider': PROVIDER.health_check()})


# ── Sessions ────────────────────────────────────────────────────────────

@app.route('/api/sessions')
def api_sessions():
    status = request.args.get('status') or None
    sessions = PROVIDER.list_sessions(status=status)
    return jsonify({'sessions': [s.to_dict() for s in sessions]})


@app.route('/api/sessions/<session_id>')
def api_session(session_id):
    session = PROVIDER.get_session(session_id)
    if session is None:
        return _not_found(f'Unknown session: {session_id}')
    return jsonify(session.to_dict())


def _sessions_table():
    """Build the sessions table for this request from the state the client echoes back.

    Query params: status, sort + dir, q, page. Nothing is kept between requests,
    so two browser tabs never see each other's sort or search.
    """
    status = request.args.get('status') or None
    table = session_table(PROVIDER.list_sessions(status=status), page_size=CONFIG.page_size)
    table.set_sort(SortState.from_params(request.args.get('sort'), request.args.get('dir')))
    table.set_search(request.args.get('q', ''))
    page = request.args.get('page')
    if page is not None:
        try:
            table.set_page(int(page))
        except ValueError:
            raise ValueError(f'Invalid page: {page!r}') from None
    return table


@app.route('/api/tables/sessions')
def api_sessions_table():
    try:
        table = _sessions_table()
    except ValueError as e:
        return _bad_request(str(e))
    return jsonify(table.render())


@app.route('/api/tables/sessions/sort', methods=['POST'])
def api_sessions_table_sort():
    """Advance the sort cycle on ``key`` from the sort state given in the query string."""
    body = request.get_json(silent=True) or {}
    key = body.get('key')
    if not isinstance(key, str) or not key:
        return _bad_request('Missing column key')
    try:
        table = _sessions_table()
        table.request_sort(key)
    except ValueError as e:
        return _bad_request(str(e))
    return jsonify(table.render())


@app.route('/api/tables/sessions/rows/<row_id>/activate', methods=['POST'])
def api_sessions_row_activate(row_id):
    try:
        table = _sessions_table()
        target = table.activate_row(row_id)
    except ValueError as e:
        return _bad_request(str(e))
    except KeyError:
        return _not_found(f'Unknown row: {row_id}')
    return jsonify({'id': row_id, 'detail': target})


# ── Activity heatmap ────────────────────────────────────────────────────

@app.route('/api/heatmap')
def api_heatmap():
    """Activity heatmap - actions per day for the last 52 weeks."""
    samples = [s.to_dict() for s in PROVIDER.get_activity()]
    return jsonify(build_heatmap(samples).to_dict())


# ── Overlays ────────────────────────────────────────────────────────────
# Each browser tab sends its own X-Rimuru-Client id, so overlays are kept
# per tab. Requests without one share the unscoped namespace.

CLIENT_HEADER = 'X-Rimuru-Client'


def _client_prefix():
    client = request.headers.get(CLIENT_HEADER, '').strip()
    if not client:
        return ''
    if '/' in client or len(client) > 64:
        raise ValueError(f'Invalid {CLIENT_HEADER} header')
    return client + '/'


def _public(snap, prefix):
    snap = dict(snap)
    snap['name'] = snap['name'][len(prefix):]
    return snap


@app.route('/api/overlays')
def api_overlays():
    try:
        prefix = _client_prefix()
    except ValueError as e:
        return _bad_request(str(e))
    SCHEDULER.pump()
    # unscoped callers only see unscoped overlays
    snaps = [s for s in OVERLAYS.snapshots(prefix) if prefix or '/' not in s['name']]
    return jsonify({'overlays': [_public(s, prefix) for s in snaps]})


@app.route('/api/overlays/<name>', methods=['GET'])
def api_overlay_get(name):
    try:
        prefix = _client_prefix()
    except ValueError as e:
        return _bad_request(str(e))
    SCHEDULER.pump()
    snap = OVERLAYS.snapshot(prefix + name)
    if snap is None:
        return _not_found(f'Unknown overlay: {name}')
    return jsonify(_public(snap, prefix))


@app.route('/api/overlays/<name>', methods=['POST'])
def api_overlay_intent(name):
    try:
        prefix = _client_prefix()
    except ValueError as e:
        return _bad_request(str(e))
    body = request.get_json(silent=True) or {}
    is_open = body.get('open')
    if not isinstance(is_open, bool):
        return _bad_request("'open' must be true or false")
    duration = body.get('duration')
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0):
        return _bad_request("'duration' must be a non-negative number of milliseconds")
    SCHEDULER.pump()
    return jsonify(_public(OVERLAYS.request(prefix + name, is_open, duration), prefix))


@app.route('/api/overlays/<name>', methods=['DELETE'])
def api_overlay_destroy(name):
    try:
        prefix = _client_prefix()
    except ValueError as e:
        return _bad_request(str(e))
    if not OVERLAYS.destroy(prefix + name):
        return _not_found(f'Unknown overlay: {name}')
    return jsonify({'name': name, 'destroyed': True})


# ── Page template ───────────────────────────────────────────────────────

DASHBOARD_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Rimuru Dashboard</title>
<style>
  :root { --bg: #0f0f1a; --bg2: #17172a; --border: #2a2a40; --text: #e6e6f0; --muted: #8888a0; --accent: #6c8cff; }
  body { margin: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; background: var(--bg); color: var(--text); }
  header { padding: 16px 24px; border-bottom: 1px solid var(--border); display: flex; justify-content: space-between; align-items: center; }
  main { padding: 24px; display: flex; flex-direction: column; gap: 32px; }
  h2 { font-size: 14px; text-transform: uppercase; letter-spacing: 0.05em; color: var(--muted); }
  .toolbar { display: flex; gap: 8px; margin-bottom: 12px; }
  .toolbar input, .toolbar select { background: var(--bg2); border: 1px solid var(--border); color: var(--text); padding: 6px 10px; border-radius: 6px; }
  table { width: 100%; border-collapse: collapse; font-size: 13px; }
  th { text-align: left; padding: 10px 12px; color: var(--muted); border-bottom: 1px solid var(--border); user-select: none; }
  th.sortable { cursor: pointer; }
  th.sortable:hover { color: var(--text); }
  td { padding: 10px 12px; border-bottom: 1px solid var(--border); }
  tr.clickable { cursor: pointer; }
  tr.clickable:hover { background: var(--bg2); }
  .empty { padding: 40px; text-align: center; color: var(--muted); }
  .pager { display: flex; justify-content: space-between; margin-top: 12px; font-size: 12px; color: var(--muted); }
  .heatmap-months, .heatmap-cells { display: grid; grid-template-columns: 32px repeat(52, 12px); gap: 3px; }
  .heatmap-cells { grid-template-rows: repeat(7, 12px); }
  .heatmap-month { font-size: 10px; color: var(--muted); }
  .heatmap-day { font-size: 10px; color: var(--muted); grid-column: 1; }
  .heatmap-cell { width: 12px; height: 12px; border-radius: 2px; }
  .intensity0 { background: #1a1a2e; } .intensity1 { background: #1f3d2b; } .intensity2 { background: #2a6a3a; }
  .intensity3 { background: #4a9a2a; } .intensity4 { background: #6adb3a; }
  .modal-overlay { position: fixed; inset: 0; background: rgba(0,0,0,0.5); display: flex; align-items: center; justify-content: center; transition: opacity 200ms ease; }
  .modal-overlay[data-state="entering"], .modal-overlay[data-state="exiting"] { opacity: 0; }
  .modal-overlay[data-state="entered"] { opacity: 1; }
  .modal-card { background: var(--bg2); border: 1px solid var(--border); border-radius: 12px; width: 90%; max-width: 560px; padding: 20px; }
  .modal-card dt { color: var(--muted); font-size: 12px; } .modal-card dd { margin: 0 0 10px 0; }
  button { background: var(--bg2); border: 1px solid var(--border); color: var(--text); border-radius: 6px; padding: 6px 12px; cursor: pointer; }
</style>
</head>
<body>
<header><strong>Rimuru Dashboard</strong><span style="color:var(--muted)">v{{ version }}</span></header>
<main>
  <section>
    <h2>Activity</h2>
    <div id="heatmap-months" class="heatmap-months"></div>
    <div id="heatmap-cells" class="heatmap-cells"></div>
  </section>
  <section>
    <h2>Sessions</h2>
    <div class="toolbar">
      <input id="session-search" type="text" placeholder="Search...">
      <select id="session-status">
        <option value="">All Status</option>
        <option value="active">Active</option>
        <option value="completed">Completed</option>
        <option value="abandoned">Abandoned</option>
        <option value="error">Error</option>
      </select>
    </div>
    <div id="sessions-table"></div>
  </section>
</main>
<div id="modal-root"></div>
<script>
var TOKEN = new URLSearchParams(location.search).get('token') || localStorage.getItem('rimuru-token') || '';
// one id per page load; the server keeps this tab's overlays apart from other tabs'
var CLIENT = Math.random().toString(36).slice(2, 12);
function api(path, opts) {
  opts = opts || {};
  opts.headers = Object.assign({'Content-Type': 'application/json'}, opts.headers || {});
  opts.headers['X-Rimuru-Client'] = CLIENT;
  if (TOKEN) opts.headers['Authorization'] = 'Bearer ' + TOKEN;
  return fetch(path, opts).then(function(r) { return r.json(); });
}
function escHtml(s) { return String(s).replace(/[&<>"']/g, function(c) { return '&#' + c.charCodeAt(0) + ';'; }); }

// ===== Sessions table =====
// the server keeps no table state; every request carries sort, search and page
var TABLE = {sort: '', dir: '', q: '', page: 0};
function tableQuery() {
  var p = new URLSearchParams();
  if (TABLE.sort) { p.set('sort', TABLE.sort); p.set('dir', TABLE.dir); }
  if (TABLE.q) p.set('q', TABLE.q);
  p.set('page', TABLE.page);
  var status = document.getElementById('session-status').value;
  if (status) p.set('status', status);
  return p.toString();
}
function renderTable(data) {
  TABLE.sort = data.sort.key || '';
  TABLE.dir = data.sort.direction || '';
  TABLE.page = data.page;
  var html = '<table><thead><tr>';
  data.columns.forEach(function(c) {
    var arrow = c.indicator === 'asc' ? ' ↑' : c.indicator === 'desc' ? ' ↓' : '';
    html += '<th class="' + (c.sortable ? 'sortable' : '') + '" data-key="' + escHtml(c.key) + '"' +
      (c.width ? ' style="width:' + escHtml(c.width) + '"' : '') + '>' + escHtml(c.label) + arrow + '</th>';
  });
  html += '</tr></thead><tbody>';
  if (data.rows.length === 0) {
    html += '<tr><td colspan="' + data.columns.length + '" class="empty">' + escHtml(data.emptyMessage || '') + '</td></tr>';
  }
  data.rows.forEach(function(r) {
    html += '<tr class="clickable" data-id="' + escHtml(r.id) + '">';
    r.cells.forEach(function(cell) { html += '<td>' + escHtml(cell) + '</td>'; });
    html += '</tr>';
  });
  html += '</tbody></table>';
  if (data.pageCount > 1) {
    html += '<div class="pager"><span>' + data.total + ' total · page ' + (data.page + 1) + ' of ' + data.pageCount + '</span>' +
      '<span><button data-page="' + (data.page - 1) + '"' + (data.page === 0 ? ' disabled' : '') + '>Prev</button> ' +
      '<button data-page="' + (data.page + 1) + '"' + (data.page >= data.pageCount - 1 ? ' disabled' : '') + '>Next</button></span></div>';
  }
  var root = document.getElementById('sessions-table');
  root.innerHTML = html;
  root.querySelectorAll('th.sortable').forEach(function(th) {
    th.onclick = function() {
      api('/api/tables/sessions/sort?' + tableQuery(), {method: 'POST', body: JSON.stringify({key: th.dataset.key})}).then(renderTable);
    };
  });
  root.querySelectorAll('tr.clickable').forEach(function(tr) {
    tr.onclick = function(e) {
      if (e.target.closest('button')) return;
      api('/api/tables/sessions/rows/' + encodeURIComponent(tr.dataset.id) + '/activate?' + tableQuery(), {method: 'POST'})
        .then(function(res) { if (res.detail) openSessionModal(res.detail); });
    };
  });
  root.querySelectorAll('.pager button').forEach(function(b) {
    b.onclick = function() { TABLE.page = Number(b.dataset.page); loadTable(); };
  });
}
function loadTable() {
  api('/api/tables/sessions?' + tableQuery()).then(renderTable);
}

// ===== Activity heatmap =====
function loadHeatmap() {
  api('/api/heatmap').then(function(data) {
    var months = '';
    data.monthLabels.forEach(function(l) {
      months += '<span class="heatmap-month" style="grid-column:' + (l.col + 2) + '">' + l.month + '</span>';
    });
    document.getElementById('heatmap-months').innerHTML = months;
    var cells = '';
    data.dayLabels.forEach(function(d, i) {
      cells += '<span class="heatmap-day" style="grid-row:' + (i + 1) + '">' + d + '</span>';
    });
    data.cells.forEach(function(c) {
      cells += '<div class="heatmap-cell intensity' + c.intensity + '" title="' + escHtml(c.title) +
        '" style="grid-column:' + (c.col + 2) + ';grid-row:' + (c.row + 1) + '"></div>';
    });
    document.getElementById('heatmap-cells').innerHTML = cells;
  });
}

// ===== Session detail modal =====
var MODAL = 'session-detail';
var modalTimer = null;
function syncModal(state, html) {
  var root = document.getElementById('modal-root');
  if (!state.shouldRender) { root.innerHTML = ''; clearInterval(modalTimer); modalTimer = null; return; }
  if (html !== undefined) root.innerHTML = html;
  var overlay = root.querySelector('.modal-overlay');
  if (overlay) overlay.dataset.state = state.phase;
  if (state.phase === 'entered' && state.open) { clearInterval(modalTimer); modalTimer = null; }
}
function pollModal() {
  clearInterval(modalTimer);
  modalTimer = setInterval(function() { api('/api/overlays/' + MODAL).then(function(s) { syncModal(s); }); }, 50);
}
function openSessionModal(detailPath) {
  api(detailPath).then(function(s) {
    var body = '<dl>';
    ['id', 'agent_type', 'status', 'model', 'project_path', 'messages', 'total_tokens', 'total_cost'].forEach(function(k) {
      body += '<dt>' + k + '</dt><dd>' + escHtml(s[k] == null ? '--' : s[k]) + '</dd>';
    });
    body += '</dl>';
    var html = '<div class="modal-overlay" data-state="exited"><div class="modal-card">' + body +
      '<button id="modal-close">Close</button></div></div>';
    api('/api/overlays/' + MODAL, {method: 'POST', body: JSON.stringify({open: true})}).then(function(state) {
      syncModal(state, html);
      var overlay = document.querySelector('.modal-overlay');
      overlay.onclick = function(e) { if (e.target === overlay) closeSessionModal(); };
      document.getElementById('modal-close').onclick = closeSessionModal;
      pollModal();
    });
  });
}
function closeSessionModal() {
  api('/api/overlays/' + MODAL, {method: 'POST', body: JSON.stringify({open: false})}).then(function(state) {
    syncModal(state);
    pollModal();
  });
}

document.getElementById('session-search').oninput = function(e) { TABLE.q = e.target.value; TABLE.page = 0; loadTable(); };
document.getElementById('session-status').onchange = function() { TABLE.page = 0; loadTable(); };
window.addEventListener('pagehide', function() {
  var headers = {'X-Rimuru-Client': CLIENT};
  if (TOKEN) headers['Authorization'] = 'Bearer ' + TOKEN;
  fetch('/api/overlays/' + MODAL, {method: 'DELETE', headers: headers, keepalive: true});
});
loadHeatmap();
loadTable();
</script>
</body>
</html>
"""


# ── CLI Entry Point ─────────────────────────────────────────────────────

BANNER = r"""
  ____  _
 |  _ \(_)_ __ ___  _   _ _ __ _   _
 | |_) | | '_ ` _ \| | | | '__| | | |
 |  _ <| | | | | | | |_| | |  | |_| |
 |_| \_\_|_| |_| |_|\__,_|_|   \__,_|
                          v{version}

  Agents · Sessions · Costs
"""


def main():
    parser = argparse.ArgumentParser(
        description="Rimuru Dashboard - agent activity, sessions and costs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Environment variables:\n"
               "  RIMURU_DATA_DIR             Directory with backend exports (default: ~/.rimuru)\n"
               "  RIMURU_PROVIDER             Data provider name (default: local)\n"
               "  RIMURU_TOKEN                Bearer token required for /api/*\n"
               "  RIMURU_PAGE_SIZE            Rows per table page (default: 20)\n"
               "  RIMURU_OVERLAY_DURATION_MS  Modal exit animation length (default: 200)\n"
               "  RIMURU_LOG_LEVEL            Logging level (default: INFO)\n"
    )
    parser.add_argument('--port', '-p', type=int, help='Port (default: 8910)')
    parser.add_argument('--host', '-H', type=str, help='Host (default: 127.0.0.1)')
    parser.add_argument('--data-dir', '-d', type=str, help='Directory with backend exports')
    parser.add_argument('--provider', type=str, help='Data provider name')
    parser.add_argument('--token', '-t', type=str, help='Bearer token required for the API')
    parser.add_argument('--page-size', type=int, help='Rows per table page')
    parser.add_argument('--overlay-duration', type=int, help='Modal exit animation length in ms')
    parser.add_argument('--log-level', type=str, help='Logging level')
    parser.add_argument('--debug', dest='debug', action='store_true', default=None, help='Enable Flask debug mode with auto-reload')
    parser.add_argument('--no-debug', dest='debug', action='store_false', help='Disable debug mode and auto-reload')
    parser.add_argument('--version', '-v', action='version', version=f'rimuru-dashboard {__version__}')

    args = parser.parse_args()
    config = DashboardConfig.from_env().apply_args(args)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [rimuru-dashboard] %(levelname)s %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        warnings = config.validate()
    except ValueError as e:
        print(f"❌  {e}")
        sys.exit(2)

    configure(config)

    print(BANNER.format(version=__version__))
    print(f"  Data dir:   {config.data_dir}")
    print(f"  Provider:   {PROVIDER.__class__.__name__}")
    print(f"  Auth:       {'🔒 Token required' if config.auth_token else '🔓 Open'}")
    print(f"  Mode:       {'🛠️  Dev (auto-reload ON)' if config.debug else '🚀 Prod (auto-reload OFF)'}")
    print()
    if warnings:
        print("🔍 Configuration Check:")
        for warning in warnings:
            print(f"  {warning}")
        print()
    print(f"  → http://{config.host}:{config.port}")
    print()

    app.run(host=config.host, port=config.port, debug=config.debug,
            use_reloader=config.debug, threaded=True)


if __name__ == '__main__':
    main()
