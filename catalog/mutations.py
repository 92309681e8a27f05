from collections import namedtuple

from catalog.exceptions import DataLossDetected, NotFound, ValidationError

ACTIONS = ('add_product', 'update_sold_status', 'update_product', 'delete_product', 'test_connection')

# Managed by the image upload flow, never by a metadata edit.
PROTECTED_FIELDS = ('images', 'thumbnailIndex')

MutationOutcome = namedtuple('MutationOutcome', ['products', 'commit_message', 'message', 'product_id'])


def validate_envelope(payload):
    """Returns (action, data) for a well-formed request envelope."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    action = payload.get('action')
    if not action:
        raise ValidationError("Action is required")
    if action not in ACTIONS:
        raise ValidationError("Invalid action")

    data = payload.get('data')
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"{action}: data must be an object")

    if action != 'test_connection':
        product_id = data.get('id')
        if not product_id or not isinstance(product_id, str):
            raise ValidationError(f"{action}: product ID is required")

    return action, data


def validate_fields(product_id, fields):
    """Returns (is_valid, reason), checking only the fields present in ``fields``."""
    if 'name' in fields and not fields['name']:
        return False, f"{product_id}: missing name"

    if 'price' in fields:
        price = fields['price']
        if price is None:
            return False, f"{product_id}: null price"
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            return False, f"{product_id}: non-numeric price"
        if price < 0:
            return False, f"{product_id}: negative price ({price})"

    if 'sold' in fields and not isinstance(fields['sold'], bool):
        return False, f"{product_id}: sold must be true or false"

    images = fields.get('images', [])
    if not isinstance(images, list):
        return False, f"{product_id}: images must be a list"

    if 'thumbnailIndex' in fields:
        thumbnail_index = fields['thumbnailIndex']
        if isinstance(thumbnail_index, bool) or not isinstance(thumbnail_index, int) or thumbnail_index < 0:
            return False, f"{product_id}: invalid thumbnailIndex ({thumbnail_index})"
        if images and thumbnail_index >= len(images):
            return False, f"{product_id}: thumbnailIndex {thumbnail_index} out of range"

    return True, ""


def validate_product(product):
    """Returns (is_valid, reason)."""
    product_id = product.get('id')
    if not product_id:
        return False, "missing product ID"
    return validate_fields(product_id, {**product, 'name': product.get('name'), 'price': product.get('price')})


def find_product(products, product_id):
    for index, product in enumerate(products):
        if product.get('id') == product_id:
            return index
    raise NotFound(f"Product with ID {product_id} not found")


def add_product(products, data):
    is_valid, reason = validate_product(data)
    if not is_valid:
        raise ValidationError(f"Invalid product: {reason}")

    product_id = data['id']
    if any(p.get('id') == product_id for p in products):
        raise ValidationError(f"Product with ID {product_id} already exists")

    product = dict(data)
    product.setdefault('sold', False)
    product.setdefault('images', [])
    product.setdefault('thumbnailIndex', 0)

    updated = list(products)
    updated.append(product)

    if len(updated) != len(products) + 1:
        raise DataLossDetected(
            f"Data loss detected: started with {len(products)} products, now have {len(updated)}"
        )

    name = product['name']
    return MutationOutcome(
        products=updated,
        commit_message=f"Add new product: {name}",
        message=f'Product "{name}" added and committed to repository. Total products: {len(updated)}',
        product_id=product_id,
    )


def update_sold_status(products, data):
    sold = data.get('sold')
    if not isinstance(sold, bool):
        raise ValidationError("update_sold_status: sold must be true or false")

    index = find_product(products, data['id'])
    product = {**products[index], 'sold': sold}

    updated = list(products)
    updated[index] = product

    status = 'sold' if sold else 'available'
    name = product.get('name', data['id'])
    return MutationOutcome(
        products=updated,
        commit_message=f'Mark "{name}" as {status}',
        message=f'Product "{name}" marked as {status}',
        product_id=data['id'],
    )


def update_product(products, data):
    index = find_product(products, data['id'])
    existing = products[index]

    changes = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
    product = {**existing, **changes}
    for field in PROTECTED_FIELDS:
        if field in existing:
            product[field] = existing[field]
        else:
            product.pop(field, None)

    is_valid, reason = validate_fields(data['id'], changes)
    if not is_valid:
        raise ValidationError(f"Invalid product: {reason}")

    updated = list(products)
    updated[index] = product

    name = product.get('name', data['id'])
    return MutationOutcome(
        products=updated,
        commit_message=f"Update product: {name}",
        message=f'Product "{name}" updated',
        product_id=data['id'],
    )


def delete_product(products, data):
    index = find_product(products, data['id'])
    name = products[index].get('name', data['id'])

    updated = products[:index] + products[index + 1:]

    if len(updated) != len(products) - 1:
        raise DataLossDetected(
            f"Data loss detected: started with {len(products)} products, now have {len(updated)}"
        )

    return MutationOutcome(
        products=updated,
        commit_message=f"Delete product: {name}",
        message=f'Product "{name}" deleted from repository. Remaining products: {len(updated)}',
        product_id=data['id'],
    )


MUTATIONS = {
    'add_product': add_product,
    'update_sold_status': update_sold_status,
    'update_product': update_product,
    'delete_product': delete_product,
}


def apply_mutation(action, products, data):
    try:
        mutation = MUTATIONS[action]
    except KeyError:
        raise ValidationError(f"{action} is not a mutation") from None
    return mutation(products, data)
