import sys

from app.core.config import settings
from app.integrations.shopify.shopify_client import ShopifyClient

if __name__ == "__main__":
    cli = ShopifyClient()
    print(cli.ping())

    # optional: python scripts/ping_shopify.py product 1234567890
    if len(sys.argv) == 3:
        rtype, rid = sys.argv[1], sys.argv[2]
        print(cli.get_resource(rtype, rid))
        print(cli.list_metafields(rtype, rid, settings.METAFIELD_NAMESPACE))


# run
# export $(grep -v '^#' .env | xargs)   # when using .env
# python scripts/ping_shopify.py



# shop.name / myshopifyDomain / plan.displayName in the reply means domain, API version and token are all OK
