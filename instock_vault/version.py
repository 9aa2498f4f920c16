"""InStock Vault Meta information.
   InStock Vault keeps the dashboard's user data sealed under a passphrase
   in local storage.
"""
__title__ = 'instock_vault'
__description__ = (
   'InStock Vault keeps the dashboard user data encrypted '
   'under a passphrase in local storage.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2026 InStock Terminal'
__author__ = 'InStock Terminal'
__license__ = 'Apache-2.0'
