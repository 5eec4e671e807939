import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, render_template, request

import contacts
import qrrender
import qrsymbol

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).with_name('contacts.json')
MAX_SCALE = 32


class RequestError(ValueError):
    """A query string or request body the service cannot use."""


def _scale(default):
    try:
        scale = int(request.args.get('scale', default))
    except ValueError:
        raise RequestError('scale must be an integer') from None
    if not 1 <= scale <= MAX_SCALE:
        raise RequestError('scale must be between 1 and {}'.format(MAX_SCALE))
    return scale


def create_app(config_path=None):
    app = Flask(__name__)
    path = config_path or os.getenv('CONTACT_QR_CONFIG') or DEFAULT_CONFIG
    config = contacts.load_config(path)
    app.config['CONTACTS'] = config

    def _colors():
        fg = request.args.get('fg', config.qr_foreground)
        bg = request.args.get('bg', config.qr_background)
        for value in (fg, bg):
            try:
                qrrender.parse_color(value)
            except ValueError as e:
                raise RequestError(str(e)) from None
        return fg, bg

    @app.errorhandler(RequestError)
    @app.errorhandler(qrsymbol.TooLong)
    def bad_request(e):
        logger.warning('rejected %s: %s', request.path, e)
        return str(e), 400

    @app.route('/')
    def index():
        query = request.args.get('q', '') if config.show_search else ''
        url = request.base_url
        qr_svg = None
        if config.show_qr_code:
            fg, bg = config.qr_foreground, config.qr_background
            qr_svg = qrrender.to_svg(qrsymbol.encode(url), foreground=fg,
                                     background=bg)
        return render_template(
            'index.html',
            config=config,
            query=query,
            groups=contacts.group_contacts(config.contacts, query,
                                           config.collapse_low_priority),
            qr_svg=qr_svg,
            qr_url=contacts.display_url(url),
        )

    @app.route('/qr.svg')
    def qr_svg():
        fg, bg = _colors()
        matrix = qrsymbol.encode(request.args.get('text', request.url_root))
        return Response(qrrender.to_svg(matrix, _scale(4), foreground=fg,
                                        background=bg),
                        mimetype='image/svg+xml')

    @app.route('/qr.png')
    def qr_png():
        fg, bg = _colors()
        matrix = qrsymbol.encode(request.args.get('text', request.url_root))
        return Response(qrrender.to_png(matrix, _scale(8), foreground=fg,
                                        background=bg),
                        mimetype='image/png')

    @app.route('/ws', methods=['POST'])
    def send_qr():
        args = request.get_json(True, silent=True)
        content = args.get('content') if isinstance(args, dict) else None
        if not isinstance(content, str):
            raise RequestError('expected a JSON object with a "content" string')
        matrix = qrsymbol.encode(content)
        return jsonify(
            version=matrix.version.number,
            size=matrix.size,
            mask=matrix.mask,
            modules=qrsymbol.module_string(matrix),
        )

    return app


def main():
    load_dotenv()
    logging.basicConfig(level=os.getenv('CONTACT_QR_LOG_LEVEL', 'INFO').upper())
    app = create_app()
    app.run(host=os.getenv('CONTACT_QR_HOST', '127.0.0.1'),
            port=int(os.getenv('CONTACT_QR_PORT', '3001')))


if __name__ == '__main__':
    main()
