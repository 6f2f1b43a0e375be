"""Credulous Meta information.
   Credulous stores cloud access credentials encrypted for SSH key holders.
"""
__title__ = 'credulous'
__description__ = (
   'Credulous stores cloud access credentials on disk, encrypted '
   'for one or more SSH key holders.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/credulous'
