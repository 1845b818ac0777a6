import asyncio
import io
import json
import logging
import os
import time
import uuid

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, send_file

from builder import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL,
    BuilderError,
    BuildInProgressError,
    ConfigurationError,
    PackagingError,
    ValidationError,
    build_request,
    generate,
    resolve_model,
    validate_inputs,
)
from packager import archive_filename, build_archive
from result_store import ResultStoreRegistry, state_to_json

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

PAGE_ID_HEADER = "X-Page-Id"

# Each page load gets its own result; a reload starts over from Empty.
stores = ResultStoreRegistry()


@app.before_request
def attach_store():
    if not request.path.startswith("/api/") or request.endpoint == "models":
        return None
    page_id = request.headers.get(PAGE_ID_HEADER, "").strip()
    if not page_id:
        return jsonify({"error": f"Missing {PAGE_ID_HEADER} header."}), 400
    g.store = stores.get(page_id)
    return None


@app.route("/")
def index():
    return HTML_PAGE.replace("/*__PAGE_ID__*/", json.dumps(uuid.uuid4().hex))


@app.route("/api/models")
def models():
    try:
        default = resolve_model()
    except ConfigurationError:
        logger.warning("Ignoring GEMINI_MODEL=%r", os.environ.get("GEMINI_MODEL"))
        default = DEFAULT_MODEL
    return jsonify({"models": AVAILABLE_MODELS, "default": default})


@app.route("/api/build", methods=["POST"])
async def build():
    form = request.form
    app_name = form.get("appName", "")
    prompt = form.get("prompt", "")
    admob_id = form.get("admobId", "")
    model = form.get("model", "").strip() or None
    app_icon = request.files.get("appIcon")
    reference_files = request.files.getlist("referenceFiles")

    try:
        validate_inputs(app_name, prompt, app_icon, admob_id)
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400

    if model and model not in AVAILABLE_MODELS:
        return jsonify({"error": f"Unknown model: {model}"}), 400

    try:
        g.store.begin()
    except BuildInProgressError as e:
        return jsonify({"error": str(e)}), 409

    try:
        start = time.time()
        gen_request = await build_request(app_name, prompt, app_icon, admob_id, reference_files)
        files = await generate(gen_request, model=model)
        elapsed = round(time.time() - start, 1)
    except Exception as e:
        logger.exception("Failed to generate project %r", app_name)
        message = f"Failed to generate project: {str(e) or 'An unknown error occurred.'}"
        g.store.fail(message)
        return jsonify({"error": message}), 502

    logger.info("Generated project %r in %ss", app_name, elapsed)
    state = g.store.succeed(files)
    return jsonify({**state_to_json(state), "elapsed": elapsed})


@app.route("/api/result")
def result():
    return jsonify(state_to_json(g.store.state))


@app.route("/api/result/select", methods=["POST"])
def result_select():
    data = request.get_json(silent=True) or {}
    key = data.get("key", "")
    try:
        state = g.store.select(key)
    except KeyError:
        return jsonify({"error": f"Unknown file: {key}"}), 400
    except BuilderError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(state_to_json(state))


@app.route("/api/download")
async def download():
    files = g.store.ready_files()
    if files is None:
        return jsonify({"error": "No generated project to download."}), 409

    app_name = request.args.get("appName", "")
    try:
        archive = await asyncio.to_thread(build_archive, files)
    except PackagingError:
        logger.exception("Failed to generate zip file")
        return jsonify({"error": "Could not create the zip file for download. Please try again."}), 500

    return send_file(
        io.BytesIO(archive),
        mimetype="application/zip",
        as_attachment=True,
        download_name=archive_filename(app_name),
    )


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>AI App Builder</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
  }

  .page {
    max-width: 880px;
    margin: 0 auto;
    padding: 32px 24px 80px;
    display: flex;
    flex-direction: column;
    gap: 24px;
  }

  header h1 { font-size: 1.8rem; font-weight: 700; color: #fff; }
  header p { margin-top: 8px; color: #888; font-size: 0.9rem; }

  .card {
    background: #1a1a1a;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 20px;
    display: flex;
    flex-direction: column;
    gap: 16px;
  }

  label.field { display: block; font-size: 0.82rem; color: #aaa; margin-bottom: 6px; }

  input[type=text], textarea, select {
    width: 100%;
    background: #141414;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 10px 12px;
    font-size: 0.9rem;
    font-family: inherit;
    outline: none;
    transition: border-color 0.2s;
  }
  input[type=text]:focus, textarea:focus, select:focus { border-color: #8b5cf6; }
  textarea { min-height: 120px; resize: vertical; line-height: 1.5; }

  .row { display: flex; gap: 16px; }
  .row > div { flex: 1; }

  button {
    background: #8b5cf6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 8px 20px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #7c3aed; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }
  button.secondary { background: #232323; color: #aaa; border: 1px solid #333; }
  button.secondary:hover { background: #2e2e2e; color: #e0e0e0; }

  .file-pick { display: inline-block; }
  .file-pick input { display: none; }

  .icon-preview { display: flex; align-items: center; gap: 10px; }
  .icon-preview img { width: 48px; height: 48px; border-radius: 8px; object-fit: cover; border: 1px solid #333; }

  .ref-list { list-style: none; display: flex; flex-direction: column; gap: 6px; }
  .ref-list li {
    display: flex; justify-content: space-between; align-items: center;
    background: #141414; border: 1px solid #2a2a2a; border-radius: 6px;
    padding: 6px 10px; font-size: 0.82rem;
  }

  .actions { display: flex; justify-content: flex-end; }

  .status { font-size: 0.78rem; color: #888; min-height: 1.2em; }
  .status .timer { color: #8b5cf6; font-variant-numeric: tabular-nums; }

  .error {
    border: 1px solid #ef4444; color: #fca5a5; background: #1a1111;
    border-radius: 10px; padding: 14px; display: none;
  }
  .error.visible { display: block; }

  .result { display: none; }
  .result.visible { display: flex; }
  .result-head { display: flex; justify-content: space-between; align-items: center; }
  .result-head h2 { font-size: 1rem; color: #fff; }

  .tabs { display: flex; flex-wrap: wrap; gap: 8px; border-bottom: 1px solid #2a2a2a; padding-bottom: 10px; }
  .tabs button { background: #232323; color: #aaa; }
  .tabs button.active { background: #8b5cf6; color: #fff; }

  .code-head { display: flex; justify-content: space-between; align-items: center; padding: 8px 12px; background: #141414; border-radius: 8px 8px 0 0; }
  .code-head .lang { font-size: 0.7rem; text-transform: uppercase; color: #8b5cf6; font-family: monospace; }
  pre.code {
    background: #0f0f0f; border: 1px solid #2a2a2a; border-top: none;
    border-radius: 0 0 8px 8px; padding: 14px; font-size: 0.8rem;
    overflow-x: auto; white-space: pre;
  }
</style>
</head>
<body>
<div class="page">
  <header>
    <h1>AI App Builder</h1>
    <p>Describe your app, and the configuration and resource files are generated for you.</p>
  </header>

  <div class="card">
    <div>
      <label class="field" for="appName">App Name</label>
      <input id="appName" type="text" placeholder="e.g., My Awesome Note Taker">
    </div>
    <div>
      <label class="field" for="prompt">App Feature Description</label>
      <textarea id="prompt" placeholder="e.g., A simple note-taking app where users can add new notes to a list and clear the list."></textarea>
    </div>
    <div class="row">
      <div>
        <label class="field">App Icon</label>
        <div id="iconPreview" class="icon-preview" style="display:none">
          <img id="iconImg" alt="App icon preview">
          <button class="secondary" onclick="removeIcon()">Remove</button>
        </div>
        <label id="iconPick" class="file-pick">
          <span class="secondary" style="display:inline-block;padding:8px 20px;border-radius:8px;background:#232323;border:1px solid #333;cursor:pointer;font-size:0.82rem">Upload Icon</span>
          <input id="appIcon" type="file" accept="image/*">
        </label>
      </div>
      <div>
        <label class="field" for="admobId">AdMob App ID</label>
        <input id="admobId" type="text" placeholder="e.g., ca-app-pub-...">
      </div>
    </div>
    <div>
      <label class="field">Reference Files (Optional)</label>
      <label class="file-pick">
        <span style="display:inline-block;padding:8px 20px;border-radius:8px;background:#232323;border:1px solid #333;cursor:pointer;font-size:0.82rem">Select Files</span>
        <input id="refFiles" type="file" multiple>
      </label>
      <ul id="refList" class="ref-list" style="margin-top:10px"></ul>
    </div>
    <div class="row">
      <div>
        <label class="field" for="model">Model</label>
        <select id="model"></select>
      </div>
      <div class="actions" style="align-items:flex-end">
        <button id="buildBtn" onclick="buildApp()">Build My App</button>
      </div>
    </div>
    <div id="status" class="status"></div>
  </div>

  <div id="error" class="error" role="alert"></div>

  <div id="result" class="card result">
    <div class="result-head">
      <h2>Generated Project Files</h2>
      <button onclick="downloadProject()">Download Project (.zip)</button>
    </div>
    <div id="tabs" class="tabs"></div>
    <div>
      <div class="code-head">
        <span id="lang" class="lang"></span>
        <button id="copyBtn" class="secondary">Copy</button>
      </div>
      <pre id="code" class="code"></pre>
    </div>
  </div>
</div>

<script>
  const appNameEl = document.getElementById('appName');
  const promptEl = document.getElementById('prompt');
  const admobEl = document.getElementById('admobId');
  const modelEl = document.getElementById('model');
  const iconInput = document.getElementById('appIcon');
  const iconPreview = document.getElementById('iconPreview');
  const iconPick = document.getElementById('iconPick');
  const iconImg = document.getElementById('iconImg');
  const refInput = document.getElementById('refFiles');
  const refList = document.getElementById('refList');
  const buildBtn = document.getElementById('buildBtn');
  const statusEl = document.getElementById('status');
  const errorEl = document.getElementById('error');
  const resultEl = document.getElementById('result');
  const tabsEl = document.getElementById('tabs');
  const codeEl = document.getElementById('code');
  const langEl = document.getElementById('lang');
  const copyBtn = document.getElementById('copyBtn');

  let appIcon = null;
  let referenceFiles = [];
  let result = null;

  const PAGE_ID = /*__PAGE_ID__*/;

  function api(url, options = {}) {
    const headers = Object.assign({ 'X-Page-Id': PAGE_ID }, options.headers || {});
    return fetch(url, Object.assign({}, options, { headers }));
  }

  // ── Timer helper ──
  function createTimer(el) {
    let interval = null;
    return {
      start() {
        const t0 = Date.now();
        clearInterval(interval);
        interval = setInterval(() => {
          const s = ((Date.now() - t0) / 1000).toFixed(1);
          el.innerHTML = '<span class="timer">' + s + 's</span> building your project files...';
        }, 100);
      },
      stop() { clearInterval(interval); interval = null; }
    };
  }
  const timer = createTimer(statusEl);

  function showError(message) {
    errorEl.textContent = message;
    errorEl.classList.add('visible');
  }
  function clearError() {
    errorEl.textContent = '';
    errorEl.classList.remove('visible');
  }

  // ── Inputs ──
  iconInput.addEventListener('change', () => {
    const file = iconInput.files[0];
    if (file) {
      if (iconImg.src) URL.revokeObjectURL(iconImg.src);
      appIcon = file;
      iconImg.src = URL.createObjectURL(file);
      iconPreview.style.display = 'flex';
      iconPick.style.display = 'none';
    }
    iconInput.value = '';
  });

  function removeIcon() {
    if (iconImg.src) URL.revokeObjectURL(iconImg.src);
    iconImg.removeAttribute('src');
    appIcon = null;
    iconPreview.style.display = 'none';
    iconPick.style.display = 'inline-block';
  }

  refInput.addEventListener('change', () => {
    referenceFiles = referenceFiles.concat(Array.from(refInput.files));
    refInput.value = '';
    renderRefs();
  });

  function renderRefs() {
    refList.innerHTML = '';
    referenceFiles.forEach((file, index) => {
      const li = document.createElement('li');
      const name = document.createElement('span');
      name.textContent = file.name;
      const rm = document.createElement('button');
      rm.className = 'secondary';
      rm.textContent = 'Remove';
      rm.addEventListener('click', () => {
        referenceFiles = referenceFiles.filter((_, i) => i !== index);
        renderRefs();
      });
      li.appendChild(name);
      li.appendChild(rm);
      refList.appendChild(li);
    });
  }

  // ── Result rendering ──
  function renderResult() {
    if (!result || result.state !== 'ready') {
      resultEl.classList.remove('visible');
      return;
    }
    resultEl.classList.add('visible');
    tabsEl.innerHTML = '';
    result.order.filter(path => result.files[path] !== undefined).forEach(path => {
      const btn = document.createElement('button');
      btn.textContent = result.labels[path];
      if (path === result.selected) btn.classList.add('active');
      btn.addEventListener('click', () => selectTab(path));
      tabsEl.appendChild(btn);
    });
    codeEl.textContent = result.files[result.selected];
    langEl.textContent = result.selected.split('.').pop();
  }

  async function selectTab(path) {
    result.selected = path;
    renderResult();
    await api('/api/result/select', {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ key: path }),
    });
  }

  copyBtn.addEventListener('click', () => {
    navigator.clipboard.writeText(codeEl.textContent);
    copyBtn.textContent = 'Copied!';
    setTimeout(() => copyBtn.textContent = 'Copy', 2000);
  });

  // ── Build ──
  function firstMissingInput() {
    if (!appNameEl.value.trim()) return 'Please provide a name for your app.';
    if (!promptEl.value.trim()) return 'Please describe the features of the app you want to build.';
    if (!appIcon) return 'Please upload an app icon.';
    if (!admobEl.value.trim()) return 'Please provide an AdMob App ID.';
    return null;
  }

  async function buildApp() {
    const missing = firstMissingInput();
    if (missing) {
      showError(missing);
      return;
    }

    const form = new FormData();
    form.append('appName', appNameEl.value);
    form.append('prompt', promptEl.value);
    form.append('admobId', admobEl.value);
    form.append('model', modelEl.value);
    if (appIcon) form.append('appIcon', appIcon, appIcon.name);
    referenceFiles.forEach(file => form.append('referenceFiles', file, file.name));

    buildBtn.disabled = true;
    buildBtn.textContent = 'Generating...';
    clearError();
    const previous = result;
    result = null;
    renderResult();
    timer.start();

    try {
      const res = await api('/api/build', { method: 'POST', body: form });
      const data = await res.json();
      if (res.status === 400) {
        // rejected before the attempt started; the old result still stands
        result = previous;
        renderResult();
      }
      if (!res.ok || data.error) throw new Error(data.error || 'HTTP ' + res.status);
      result = data;
      renderResult();
      timer.stop();
      statusEl.innerHTML = 'Completed in <span class="timer">' + data.elapsed + 's</span>';
    } catch (e) {
      timer.stop();
      statusEl.textContent = '';
      showError(e.message);
    } finally {
      buildBtn.disabled = false;
      buildBtn.textContent = 'Build My App';
    }
  }

  // ── Download ──
  async function downloadProject() {
    if (!result) return;
    try {
      const res = await api('/api/download?appName=' + encodeURIComponent(appNameEl.value));
      if (!res.ok) {
        const data = await res.json();
        throw new Error(data.error || 'HTTP ' + res.status);
      }
      const blob = await res.blob();
      const match = /filename="?([^";]+)"?/.exec(res.headers.get('Content-Disposition') || '');
      const a = document.createElement('a');
      a.href = URL.createObjectURL(blob);
      a.download = match ? match[1] : 'generated_app.zip';
      document.body.appendChild(a);
      a.click();
      a.remove();
      setTimeout(() => URL.revokeObjectURL(a.href), 1000);
    } catch (e) {
      showError(e.message);
    }
  }

  // ── Startup ──
  (async () => {
    const res = await fetch('/api/models');
    const data = await res.json();
    data.models.forEach(m => {
      const opt = document.createElement('option');
      opt.value = m;
      opt.textContent = m;
      if (m === data.default) opt.selected = true;
      modelEl.appendChild(opt);
    });
  })();
</script>
</body>
</html>
"""

if __name__ == "__main__":
    app.run(debug=True, port=5001, threaded=True)
