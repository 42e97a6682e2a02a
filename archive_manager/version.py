"""Archive Manager Meta information.
   Archive Manager keeps a registry of password-protected credential sources
   synchronized with a key-value storage backend.
"""
__title__ = 'archive_manager'
__description__ = (
   'Archive Manager keeps a registry of locked and unlocked credential '
   'sources synchronized with key-value storage.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
