"""PAGOMATIC: inventario, despachos a sucursales y cuentas por cobrar/pagar."""

__version__ = '1.0.0'
