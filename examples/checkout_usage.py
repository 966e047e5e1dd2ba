"""
Example usage of the Rewards Store client.

Adds a catalog item to a customer's cart, checks out, and reads the
resulting transaction back. Needs AWS credentials that may connect to the
cluster, and CLUSTER_ENDPOINT / AWS_REGION in the environment.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from uuid import UUID

from rewards_store import InsufficientBalance, RewardsClient, RewardsOperationalError
from rewards_store.logging_setup import configure_logging


def main(username: str, item_id: UUID):
    configure_logging("DEBUG")

    cfg = {
        "endpoint": os.environ["CLUSTER_ENDPOINT"],
        "region": os.environ.get("AWS_REGION", "us-east-1"),
        "max_attempts": 5,
    }

    with RewardsClient(cfg) as rc:
        print(f"Session: {rc.health()}")
        print(f"Balance before: {rc.balance(username)}")

        rc.add_cart_item(username, item_id, quantity=2)
        for item in rc.cart_items(username):
            print(f"  cart: {item.quantity} x {item.name} @ {item.points_price}")

        try:
            tx_id = rc.checkout(username)
        except RewardsOperationalError as e:
            if isinstance(e.cause, InsufficientBalance):
                print("Not enough points; emptying cart")
                rc.remove_cart_items(username)
                return
            raise

        if tx_id is None:
            print("Empty cart. Nothing to do.")
            return

        print(f"Checked out as transaction {tx_id}")
        print(f"Balance after: {rc.balance(username)}")

        tx = rc.transaction(username, tx_id)
        print(f"  {tx.tx_type} {tx.points} points, {len(tx.items)} line(s)")

        end = datetime.now(timezone.utc)
        recent = rc.transactions(username, end - timedelta(days=7), end)
        print(f"Transactions in the last 7 days: {len(recent)}")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        sys.exit("usage: checkout_usage.py USERNAME ITEM_ID")
    main(sys.argv[1], UUID(sys.argv[2]))
