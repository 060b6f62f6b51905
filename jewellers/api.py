# jewellers/api.py
from flask import Blueprint, jsonify, request, url_for
from werkzeug.exceptions import BadRequest
from werkzeug.routing import IntegerConverter

from .errors import NotFound, PayloadError
from .resources import MAX_INT, RESOURCES
from .services import crud, product_gems, product_offers, product_images

api = Blueprint('api', __name__, url_prefix='/api')


class IdConverter(IntegerConverter):
    """`<id:name>`: a positive key that fits the integer columns."""

    def __init__(self, map):
        super().__init__(map, min=1, max=MAX_INT)


def body():
    try:
        payload = request.get_json(force=True)
    except BadRequest:
        raise PayloadError('request body must be valid JSON')
    return payload


@api.url_value_preprocessor
def check_resource(endpoint, values):
    if values and 'resource' in values and values['resource'] not in RESOURCES:
        raise NotFound(f"unknown resource {values['resource']}")


@api.route('/<resource>', methods=['GET'])
def list_items(resource):
    items, total = crud(resource).list(request.args)
    response = jsonify([item.to_dict() for item in items])
    response.headers['X-Total-Count'] = str(total)
    return response


@api.route('/<resource>/<id:ident>', methods=['GET'])
def get_item(resource, ident):
    return jsonify(crud(resource).get(ident).to_dict())


@api.route('/<resource>', methods=['POST'])
def create_item(resource):
    item = crud(resource).create(body())
    response = jsonify(item.to_dict())
    response.status_code = 201
    response.headers['Location'] = url_for('api.get_item', resource=resource, ident=item.id)
    return response


@api.route('/<resource>/<id:ident>', methods=['PUT'])
def update_item(resource, ident):
    return jsonify(crud(resource).update(ident, body()).to_dict())


@api.route('/<resource>/<id:ident>', methods=['DELETE'])
def delete_item(resource, ident):
    crud(resource).delete(ident)
    return '', 204


# product links

@api.route('/products/<id:product_id>/images', methods=['GET'])
def list_product_images(product_id):
    return jsonify([image.to_dict() for image in product_images(product_id)])


@api.route('/products/<id:product_id>/gems', methods=['GET'])
def list_product_gems(product_id):
    return jsonify([gem.to_dict() for gem in product_gems().list(product_id)])


@api.route('/products/<id:product_id>/gems', methods=['POST'])
def add_product_gem(product_id):
    link = product_gems().add(product_id, body())
    return jsonify(link.to_dict()), 201


@api.route('/products/<id:product_id>/gems/<id:gem_id>', methods=['DELETE'])
def remove_product_gem(product_id, gem_id):
    product_gems().remove(product_id, gem_id)
    return '', 204


@api.route('/products/<id:product_id>/offers', methods=['GET'])
def list_product_offers(product_id):
    return jsonify([offer.to_dict() for offer in product_offers().list(product_id)])


@api.route('/products/<id:product_id>/offers', methods=['POST'])
def add_product_offer(product_id):
    link = product_offers().add(product_id, body())
    return jsonify(link.to_dict()), 201


@api.route('/products/<id:product_id>/offers/<id:offer_id>', methods=['DELETE'])
def remove_product_offer(product_id, offer_id):
    product_offers().remove(product_id, offer_id)
    return '', 204
