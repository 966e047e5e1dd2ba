"""
Parameterised statements for the xpoints rewards schema.

Statements use psycopg named placeholders; nothing is built from user input.
"""

CURRENT_SESSION_ID = "SELECT sys.current_session_id()"

HEALTH = "SELECT 1"

# ---------- customers ----------

CUSTOMER_ID_BY_USERNAME = "SELECT id FROM xpoints.customers WHERE username = %(username)s"

CUSTOMER_BY_USERNAME = """
SELECT id, username, first_name, last_name, email, phone_num
FROM xpoints.customers
WHERE username = %(username)s
"""

# ---------- balances ----------

BALANCE_BY_CUSTOMER = """
SELECT points_balance FROM xpoints.points_balances WHERE customer_id = %(customer_id)s
"""

DEBIT_BALANCE = """
UPDATE xpoints.points_balances
SET points_balance = points_balance - %(points)s
WHERE customer_id = %(customer_id)s
"""

# ---------- catalog ----------

CATALOG_ITEM_EXISTS = "SELECT 1 FROM xpoints.catalog_items WHERE id = %(item_id)s"

CATALOG_ITEM_COLUMNS = """
ci.id, ci.name, ci.description, ci.category, ci.usd_price, ci.points_price,
ci.rating, ci.sku, ci.weight, ci.width, ci.height, ci.depth,
img.presigned_url AS thumbnail_url
"""

# one row per gallery image; image columns are NULL when there is none
CATALOG_ITEM_BY_ID = f"""
SELECT {CATALOG_ITEM_COLUMNS}, gallery.image_id, gallery.presigned_url AS image_url
FROM xpoints.catalog_items ci
LEFT OUTER JOIN xpoints.image_urls img
    ON ci.thumbnail_id = img.image_id AND img.region = %(region)s
LEFT OUTER JOIN (
    SELECT cimg.item_id, cimg.image_id, iu.presigned_url
    FROM xpoints.catalog_images cimg
    INNER JOIN xpoints.image_urls iu
        ON iu.image_id = cimg.image_id AND iu.region = %(region)s
) gallery ON ci.id = gallery.item_id
WHERE ci.id = %(item_id)s
"""

# composed with psycopg.sql: {where} is empty or a category filter,
# {sort_field} / {sort_order} come from allow-lists only
CATALOG_ITEM_LIST = f"""
SELECT {CATALOG_ITEM_COLUMNS}
FROM xpoints.catalog_items ci
LEFT OUTER JOIN xpoints.image_urls img
    ON ci.thumbnail_id = img.image_id AND img.region = %(region)s
{{where}}
ORDER BY {{sort_field}} {{sort_order}}
"""

CATALOG_CATEGORY_FILTER = "WHERE ci.category = %(category)s"

# ---------- shopping cart ----------

CART_LINE = """
SELECT quantity FROM xpoints.shopping_cart_items
WHERE customer_id = %(customer_id)s AND item_id = %(item_id)s
"""

CART_LINES_WITH_PRICES = """
SELECT cart.customer_id, cart.item_id, cart.quantity, cat.points_price
FROM xpoints.shopping_cart_items cart
INNER JOIN xpoints.catalog_items cat ON cart.item_id = cat.id
WHERE cart.customer_id = %(customer_id)s
"""

CART_ITEMS_BY_USERNAME = """
SELECT cart.quantity, item.id, item.name, item.description, item.points_price,
       item.thumbnail_url
FROM xpoints.shopping_cart_items cart
INNER JOIN xpoints.customers cust ON cust.id = cart.customer_id
INNER JOIN (
    SELECT ci.*, img.presigned_url AS thumbnail_url
    FROM xpoints.catalog_items ci
    LEFT OUTER JOIN xpoints.image_urls img
        ON ci.thumbnail_id = img.image_id AND img.region = %(region)s
) item ON cart.item_id = item.id
WHERE cust.username = %(username)s
ORDER BY item.name
"""

INSERT_CART_LINE = """
INSERT INTO xpoints.shopping_cart_items (customer_id, item_id, quantity)
VALUES (%(customer_id)s, %(item_id)s, %(quantity)s)
"""

UPDATE_CART_LINE = """
UPDATE xpoints.shopping_cart_items SET quantity = %(quantity)s
WHERE customer_id = %(customer_id)s AND item_id = %(item_id)s
"""

DELETE_CART_LINE = """
DELETE FROM xpoints.shopping_cart_items
WHERE customer_id = %(customer_id)s AND item_id = %(item_id)s
"""

DELETE_CART = "DELETE FROM xpoints.shopping_cart_items WHERE customer_id = %(customer_id)s"

# ---------- orders & ledger ----------

INSERT_ORDER_ITEM = """
INSERT INTO xpoints.order_items (tx_id, cat_item_id, unit_cnt, unit_points_price)
VALUES (%(tx_id)s, %(item_id)s, %(quantity)s, %(points_price)s)
"""

INSERT_TRANSACTION = """
INSERT INTO xpoints.transactions (id, customer_id, tx_type, points)
VALUES (%(tx_id)s, %(customer_id)s, %(tx_type)s, %(points)s)
"""

TRANSACTIONS_BY_USERNAME = """
SELECT tx.id, tx.customer_id, tx.tx_type, tx.points, tx.tx_dt
FROM xpoints.transactions tx
INNER JOIN xpoints.customers c ON tx.customer_id = c.id
WHERE c.username = %(username)s AND tx.tx_dt >= %(start)s AND tx.tx_dt <= %(end)s
ORDER BY tx.tx_dt DESC
"""

TRANSACTION_WITH_ORDER_ITEMS = """
SELECT t.id, t.customer_id, t.tx_type, t.points, t.tx_dt,
       o.cat_item_id, o.unit_cnt, o.unit_points_price, ci.name AS item_name
FROM xpoints.transactions t
LEFT OUTER JOIN xpoints.order_items o ON o.tx_id = t.id
LEFT OUTER JOIN xpoints.catalog_items ci ON ci.id = o.cat_item_id
WHERE t.id = %(tx_id)s AND t.customer_id = %(customer_id)s
ORDER BY ci.name
"""
