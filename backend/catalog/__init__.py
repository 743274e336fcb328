"""
Catalog package — channel product staging and import pipeline.

  staging      fetch from a channel adapter into channel_products_staging
  importer     merge staged rows into the product catalog
  maintenance  list / skip / delete staged rows
  sync_log     append-only audit writer
"""
