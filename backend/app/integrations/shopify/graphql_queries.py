# GraphQL documents used by ShopifyClient


# ---------- reads ----------

# Content fields for either resource type; node(id) lets one query serve both
RESOURCE_CONTENT_BY_ID = """
query ResourceContent($id: ID!) {
  node(id: $id) {
    __typename
    ... on Product {
      id
      title
      handle
      descriptionHtml
      description
      vendor
      productType
      tags
    }
    ... on Article {
      id
      title
      handle
      body
      summary
      tags
    }
  }
}
""".strip()


# Namespaced metafields on a product or article (cursor paginated)
METAFIELDS_BY_OWNER = """
query OwnerMetafields($id: ID!, $namespace: String!, $first: Int!, $after: String) {
  node(id: $id) {
    __typename
    ... on HasMetafields {
      metafields(namespace: $namespace, first: $first, after: $after) {
        edges {
          node { id namespace key type value updatedAt }
        }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
}
""".strip()


# ---------- writes ----------

PRODUCT_UPDATE = """
mutation ProductUpdate($product: ProductUpdateInput!) {
  productUpdate(product: $product) {
    product { id title }
    userErrors { field message }
  }
}
""".strip()


ARTICLE_UPDATE = """
mutation ArticleUpdate($id: ID!, $article: ArticleUpdateInput!) {
  articleUpdate(id: $id, article: $article) {
    article { id title }
    userErrors { field message code }
  }
}
""".strip()


METAFIELDS_SET = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace }
    userErrors { field message code }
  }
}
""".strip()


METAFIELDS_DELETE = """
mutation metafieldsDelete($metafields: [MetafieldIdentifierInput!]!) {
  metafieldsDelete(metafields: $metafields) {
    deletedMetafields { key namespace ownerId }
    userErrors { field message }
  }
}
""".strip()


SHOP_PING = """
{
  shop {
    name
    myshopifyDomain
    plan { displayName }
  }
}
""".strip()
