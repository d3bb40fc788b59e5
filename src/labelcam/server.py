"""
Flask web server: live MJPEG stream, manual labeling page and JSON API.
"""

import time
import logging
import threading
import numpy as np
from typing import List, Optional
from flask import Flask, Response, abort, jsonify, render_template_string, request
from .config import StreamConfig
from .context import AppContext
from .utils import encode_jpeg
from .workflow import LabelingWorkflow


logger = logging.getLogger(__name__)


LIVE_PAGE = """<!DOCTYPE html>
<html>
<head><title>labelcam - live</title></head>
<body style="font-family: sans-serif; text-align: center;">
  <h1>Live detection</h1>
  <p id="status">Loading model...</p>
  <img id="stream" src="/stream" width="640" height="480" style="display: none;">
  <p><a href="/label">Manual labeling</a></p>
  <script>
    async function poll() {
      const health = await (await fetch('/health')).json();
      const status = document.getElementById('status');
      const stream = document.getElementById('stream');
      if (health.camera_error) {
        status.textContent = 'Camera unavailable: ' + health.camera_error;
        stream.style.display = 'none';
      } else if (health.detector === 'ready') {
        status.textContent = '';
        stream.style.display = 'inline';
      } else if (health.detector === 'failed') {
        status.textContent = 'Model failed to load: ' + health.detector_error;
      }
    }
    setInterval(poll, 1000);
    poll();
  </script>
</body>
</html>
"""

LABEL_PAGE = """<!DOCTYPE html>
<html>
<head><title>labelcam - labeling</title></head>
<body style="font-family: sans-serif; text-align: center;">
  <h1>Manual labeling</h1>
  <p id="status">Loading model...</p>
  <img id="frame" width="640" height="480" style="display: none;">
  <div id="buttons" style="margin-top: 1em; display: none;">
    {% for label in quick_labels %}
    <button onclick='assign({{ label|tojson }})'>{{ label|capitalize }}</button>
    {% endfor %}
    <button id="suggested" onclick="assign(this.dataset.label)"></button>
  </div>
  <p><button id="next" onclick="next()" style="display: none;">Load New Image</button></p>
  <p><a href="/">Live view</a></p>
  <script>
    let shown = null;
    async function post(url, body) {
      await fetch(url, {method: 'POST', headers: {'Content-Type': 'application/json'},
                        body: JSON.stringify(body || {})});
      poll();
    }
    function assign(label) { post('/api/review/label', {label: label}); }
    function next() { post('/api/review/next'); }
    async function poll() {
      const health = await (await fetch('/health')).json();
      const review = await (await fetch('/api/review')).json();
      const status = document.getElementById('status');
      const frame = document.getElementById('frame');
      const buttons = document.getElementById('buttons');
      const nextButton = document.getElementById('next');
      nextButton.style.display = health.detector === 'ready' ? 'inline' : 'none';
      if (health.detector === 'loading') {
        status.textContent = 'Loading model...';
        return;
      }
      if (health.detector === 'failed') {
        status.textContent = 'Model failed to load: ' + health.detector_error;
        return;
      }
      if (review.state === 'failed') {
        status.textContent = 'Failed to load image. Please try again.';
        frame.style.display = 'none';
        buttons.style.display = 'none';
        shown = null;
        return;
      }
      const key = review.generation + ':' + review.index;
      if (review.state === 'reviewing') {
        status.textContent = 'Detection ' + (review.index + 1) + ' of ' + review.batch_size;
        const suggested = document.getElementById('suggested');
        suggested.dataset.label = review.suggested_label;
        suggested.textContent = review.suggested_label.toUpperCase();
        buttons.style.display = 'block';
        if (shown !== key) {
          frame.src = '/api/review/frame.jpg?k=' + encodeURIComponent(key);
          frame.style.display = 'inline';
          shown = key;
        }
      } else {
        status.textContent = review.state.replace('_', ' ') + '...';
        frame.style.display = 'none';
        buttons.style.display = 'none';
        shown = null;
      }
    }
    setInterval(poll, 500);
    poll();
  </script>
</body>
</html>
"""


class WebServer:
    """
    Flask server for both modes.

    The live stream is fed through ``update_frame``; the labeling routes are
    only registered when a workflow is given.
    """

    def __init__(self, config: StreamConfig, context: AppContext,
                 workflow: Optional[LabelingWorkflow] = None,
                 quick_labels: Optional[List[str]] = None):
        self.config = config
        self.context = context
        self.workflow = workflow
        self.quick_labels = quick_labels or []
        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)

        # Thread-safe frame buffer
        self.current_frame: Optional[np.ndarray] = None
        self.frame_lock = threading.Lock()

        self.stats = {
            'fps': 0.0,
            'inference_time': 0.0,
            'num_detections': 0,
            'total_frames': 0
        }
        self.stats_lock = threading.Lock()
        self.start_time = time.time()
        self.camera_error: Optional[str] = None

        self._setup_routes()
        if workflow is not None:
            self._setup_labeling_routes()

        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

    def _setup_routes(self):
        """Setup live-mode routes."""

        @self.app.route('/')
        def index():
            return LIVE_PAGE

        @self.app.route('/stream')
        def stream():
            """MJPEG stream endpoint."""
            return Response(
                self._generate_frames(),
                mimetype='multipart/x-mixed-replace; boundary=frame'
            )

        @self.app.route('/health')
        def health():
            detector = self.context.detector
            return jsonify({
                'status': 'running',
                'uptime': int(time.time() - self.start_time),
                'detector': detector.status,
                'detector_error': detector.load_error,
                'camera_error': self.camera_error,
            })

        @self.app.route('/api/stats')
        def stats():
            with self.stats_lock:
                return jsonify({
                    'fps': round(self.stats['fps'], 2),
                    'inference_time': round(self.stats['inference_time'], 3),
                    'num_detections': self.stats['num_detections'],
                    'uptime': int(time.time() - self.start_time),
                    'total_frames': self.stats['total_frames']
                })

        @self.app.route('/api/records')
        def records():
            return jsonify([r.to_dict() for r in self.context.store.get_all_records()])

    def _setup_labeling_routes(self):
        """Setup manual labeling routes."""
        workflow = self.workflow

        @self.app.route('/label')
        def label_page():
            return render_template_string(LABEL_PAGE, quick_labels=self.quick_labels)

        @self.app.route('/api/review')
        def review():
            return jsonify(workflow.snapshot().to_dict())

        @self.app.route('/api/review/frame.jpg')
        def review_frame():
            image = workflow.render_frame()
            if image is None:
                abort(404)
            data = encode_jpeg(image, self.config.jpeg_quality)
            if data is None:
                abort(500)
            return Response(data, mimetype='image/jpeg')

        @self.app.route('/api/review/label', methods=['POST'])
        def review_label():
            payload = request.get_json(silent=True) or {}
            label = payload.get('label')
            if not isinstance(label, str) or not label.strip():
                return jsonify({'error': 'label must be a non-empty string'}), 400
            workflow.assign_label(label)
            return jsonify(workflow.snapshot().to_dict())

        @self.app.route('/api/review/next', methods=['POST'])
        def review_next():
            if self.context.detector.status != "ready":
                return jsonify({'error': 'detector is not ready'}), 503
            workflow.request_new_frame()
            return jsonify(workflow.snapshot().to_dict())

    def _generate_frames(self):
        """
        Generator for MJPEG frames.

        Yields:
            MJPEG frame data
        """
        while True:
            with self.frame_lock:
                frame = self.current_frame

            if frame is not None:
                frame_bytes = encode_jpeg(frame, self.config.jpeg_quality)
                if frame_bytes is not None:
                    yield (b'--frame\r\n'
                           b'Content-Type: image/jpeg\r\n\r\n' + frame_bytes + b'\r\n')

            time.sleep(0.01)

    def update_frame(self, frame: np.ndarray):
        """
        Update the current frame to be streamed.

        Args:
            frame: New frame (BGR format)
        """
        with self.frame_lock:
            self.current_frame = frame.copy()

    def update_stats(self, fps: float, inference_time: float, num_detections: int):
        with self.stats_lock:
            self.stats['fps'] = fps
            self.stats['inference_time'] = inference_time
            self.stats['num_detections'] = num_detections
            self.stats['total_frames'] += 1

    def report_camera_error(self, message: str):
        self.camera_error = message

    def start(self):
        """Start the web server in a separate thread."""
        if self.is_running:
            logger.warning("Web server already running")
            return

        logger.info(f"Starting web server on {self.config.host}:{self.config.port}")

        def run_server():
            self.app.run(
                host=self.config.host,
                port=self.config.port,
                threaded=True,
                debug=False,
                use_reloader=False
            )

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.is_running = True

    def stop(self):
        """Stop the web server."""
        self.is_running = False
        logger.info("Web server stopped")
