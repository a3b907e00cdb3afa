# ==============================================================================
# REPOSITORIOS DE CATÁLOGO
# ==============================================================================
# Productos, proveedores y sucursales.
# Cada colección se almacena como diccionario: {id: {datos}}
# Los campos derivados (stock, deudas) NO se mantienen aquí.
# ==============================================================================

from typing import Any, Dict, List

from pagomatic.models import parse_flag
from pagomatic.repositories.base import CollectionRepository


class ProductRepository(CollectionRepository):
    """
    Repositorio de productos.

    Formato de datos en products.json:
    {
        "prod-1700000000000": {
            "id": "prod-1700000000000",
            "name": "Harina 1kg",
            "supplierId": "sup-1",
            "purchaseCost": "1.20",
            "supplyPrice": "1.80",
            ...
        }
    }
    """

    COLLECTION = 'products'
    FILE_NAME = 'products.json'

    def find_by_supplier(self, supplier_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('supplierId', supplier_id)

    def search(self, term: str) -> List[Dict[str, Any]]:
        """Búsqueda por nombre o marca (sin distinguir mayúsculas)."""
        needle = (term or '').strip().lower()
        if not needle:
            return self.all()
        return self.filter(
            lambda p: needle in (p.get('name') or '').lower()
            or needle in (p.get('brand') or '').lower()
        )


class SupplierRepository(CollectionRepository):
    """
    Repositorio de proveedores.

    El proveedor 'sup-local' es reservado y lo crea el servicio de
    proveedores si falta.
    """

    COLLECTION = 'suppliers'
    FILE_NAME = 'suppliers.json'

    def exists(self, supplier_id: str) -> bool:
        return self.get(supplier_id) is not None


class StoreRepository(CollectionRepository):
    """Repositorio de sucursales."""

    COLLECTION = 'stores'
    FILE_NAME = 'stores.json'

    def get_active(self) -> List[Dict[str, Any]]:
        # Solo un active falso explícito suspende una sucursal
        return self.filter(lambda s: parse_flag(s.get('active'), default=True) is not False)
