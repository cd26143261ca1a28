import os

from flask import Flask, jsonify, render_template_string, request, send_file, url_for

from service_areas.clients import AppsScriptClientStore, CsvClientStore
from service_areas.config import APPS_SCRIPT_URL, BUNDLE_PATH, CACHE_PATH, CLIENTS_SOURCE, DEBUG, PREFETCH_TIMEOUT_SECONDS
from service_areas.exceptions import BundleError, ClientNotFoundError, MapGenerationError, ValidationError
from service_areas.normalizer import append_entry, service_area_entries
from service_areas.rendering import create_service_area_map
from service_areas.resolver import build_interactive_resolver
from service_areas.service import ServiceAreaService

# Initialize Flask app
app = Flask(__name__)
app.config['DEBUG'] = DEBUG
app.config['JSON_SORT_KEYS'] = False


def build_service():
    """Service wired to the configured client store, persisted cache and bundle."""
    if APPS_SCRIPT_URL:
        store = AppsScriptClientStore(APPS_SCRIPT_URL)
    else:
        store = CsvClientStore(CLIENTS_SOURCE)
    return ServiceAreaService(store, build_interactive_resolver(CACHE_PATH), bundle_path=BUNDLE_PATH,
                              prefetch_on_load=True)


# Nothing is read until the first request, which also starts the prefetch pass
app.config['SERVICE_AREAS'] = build_service()


def get_service() -> ServiceAreaService:
    return app.config['SERVICE_AREAS']


# Responses are live data; only the static bundle may be cached
@app.after_request
def add_no_cache_headers(response):
    if request.path != '/data/service-areas.json':
        response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate, public, max-age=0'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
    return response


CLIENT_LIST_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Client Service Areas</title>
    <style>
      body { margin: 0; padding: 0; font-family: Calibri, sans-serif; background: #f4f7fa; }
      .container { max-width: 800px; margin: 40px auto; background: #fff; border-radius: 8px;
                   box-shadow: 0 2px 5px rgba(0,0,0,0.15); padding: 20px 30px; }
      h1 { margin-top: 0; color: #333; }
      td, th { padding: 6px 10px; text-align: left; border-bottom: 1px solid #eee; }
      .muted { color: #888; }
    </style>
</head>
<body>
  <div class="container">
    <h1>Client Service Areas</h1>
    <table>
      <tr><th>Client</th><th>Industry</th><th>Location</th><th>Service area</th></tr>
      {% for client in clients %}
      <tr>
        <td><a href="{{ client.map_url }}" target="_blank">{{ client.name }}</a></td>
        <td>{{ client.industry }}</td>
        <td>{{ client.location }}</td>
        <td>{{ client.entries|join(', ') }}{% if not client.entries %}<span class="muted">none</span>{% endif %}</td>
      </tr>
      {% endfor %}
    </table>
  </div>
</body>
</html>
"""


def client_summary(service, record):
    return {
        **record.to_dict(),
        'entries': service_area_entries(record.service_area, service.max_entries),
        'precomputed': bool(service.bundle_index.get(record.name)),
    }


@app.route("/", methods=["GET"])
def client_list():
    service = get_service()
    clients = []
    for record in service.list_clients():
        summary = client_summary(service, record)
        summary['map_url'] = url_for('client_map', name=record.name)
        clients.append(summary)
    return render_template_string(CLIENT_LIST_TEMPLATE, clients=clients)


@app.route("/api/clients", methods=["GET"])
def list_clients():
    service = get_service()
    return jsonify([client_summary(service, record) for record in service.list_clients()])


@app.route("/api/service-areas/<path:name>", methods=["GET"])
def service_area(name):
    bundle = get_service().render_bundle(name)
    return jsonify({'client': name, **bundle.to_dict()})


@app.route("/api/service-areas/<path:name>/toggle", methods=["POST"])
def toggle_service_area(name):
    bundle = get_service().toggle_client(name)
    if bundle is None:
        return jsonify({'client': name, 'displayed': False})
    return jsonify({'client': name, 'displayed': True, **bundle.to_dict()})


@app.route("/api/preview", methods=["GET"])
def preview_service_area():
    entry = (request.args.get("entry") or "").strip()
    if not entry:
        raise ValidationError("Enter a ZIP or place")
    service = get_service()
    area = service.preview_entry(entry)
    if area is None:
        return jsonify({'entry': entry, 'error': 'No polygon found'}), 404

    result = area.to_dict()
    # Field value after "add to client"; the sheet itself is updated elsewhere
    client_name = request.args.get("client")
    if client_name:
        record = service.get_client(client_name)
        result['serviceArea'] = append_entry(record.service_area, area.token)
    return jsonify(result)


@app.route("/api/prefetch", methods=["POST"])
def prefetch():
    try:
        timeout = float(request.args.get("timeout", PREFETCH_TIMEOUT_SECONDS))
    except ValueError:
        raise ValidationError("timeout must be a number of seconds")
    return jsonify(get_service().prefetch_all(timeout=timeout))


@app.route("/api/refresh-service-areas", methods=["POST"])
def refresh_service_areas():
    try:
        bundle = get_service().refresh_bundle()
    except (BundleError, ValidationError, OSError) as e:
        app.logger.error(f"Service area refresh failed: {e}")
        return jsonify({'success': False, 'error': 'Export failed', 'details': str(e)}), 500
    app.logger.info(f"Service areas refreshed: {bundle['clientCount']} clients")
    return jsonify({
        'success': True,
        'message': 'Service areas refreshed successfully',
        'clientCount': bundle['clientCount'],
        'generatedAt': bundle['generatedAt'],
    })


@app.route("/map/<path:name>", methods=["GET"])
def client_map(name):
    service = get_service()
    record = service.get_client(name)
    bundle = service.render_bundle(name)
    lat, lng = service.client_location(record)
    m = create_service_area_map(bundle, record.name, lat, lng)
    return m.get_root().render()


@app.route("/data/service-areas.json", methods=["GET"])
def precomputed_bundle():
    path = get_service().bundle_path
    if not os.path.exists(path):
        return jsonify({'error': 'No precomputed bundle'}), 404
    response = send_file(os.path.abspath(path), mimetype='application/json')
    response.headers['Cache-Control'] = 'public, max-age=300, s-maxage=3600'
    return response


# ------------------------------------------
# Error handling framework
# ------------------------------------------
@app.errorhandler(ValidationError)
def bad_request(e):
    return jsonify({'error': str(e)}), 400

@app.errorhandler(ClientNotFoundError)
def client_not_found(e):
    return jsonify({'error': str(e)}), 404

@app.errorhandler(MapGenerationError)
def map_failed(e):
    app.logger.error(f"Map generation failed: {e}")
    return jsonify({'error': 'Could not render the service area map'}), 500

@app.errorhandler(404)
def not_found(e):
    return jsonify({'error': 'Resource not found'}), 404

@app.errorhandler(500)
def internal_error(e):
    return jsonify({'error': 'An internal server error occurred'}), 500


if __name__ == "__main__":
    app.run(host='0.0.0.0', port=5050, debug=app.config.get('DEBUG', False))
