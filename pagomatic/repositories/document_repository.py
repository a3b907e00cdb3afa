# ==============================================================================
# REPOSITORIOS DE DOCUMENTOS
# ==============================================================================
# Facturas, despachos, abonos de sucursal, pagos a proveedor y ajustes de
# stock. Son el registro "solo-agregar" sobre el que se calculan todos los
# saldos. Los documentos no se borran: se anulan con status 'cancelled'.
# ==============================================================================

from typing import Any, Dict, List

from pagomatic.repositories.base import CollectionRepository


class InvoiceRepository(CollectionRepository):
    """
    Repositorio de facturas de proveedor.

    Formato de datos en invoices.json:
    {
        "inv-1": {
            "id": "inv-1",
            "supplierId": "sup-1",
            "invoiceNumber": "F001-123",
            "items": [{"productId": "prod-1", "quantity": "100", ...}],
            "totalAmount": "100",
            "approvalStatus": "approved"
        }
    }
    """

    COLLECTION = 'invoices'
    FILE_NAME = 'invoices.json'

    def find_by_supplier(self, supplier_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('supplierId', supplier_id)

    def find_by_number_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        return self.filter(lambda i: str(i.get('invoiceNumber') or '').startswith(prefix))


class DispatchRepository(CollectionRepository):
    """
    Repositorio de despachos a sucursales.

    Las devoluciones se guardan dentro del despacho en 'returns'.
    """

    COLLECTION = 'dispatches'
    FILE_NAME = 'dispatches.json'

    def find_by_store(self, store_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('storeId', store_id)

    def get_next_dispatch_number(self) -> str:
        """
        Genera el siguiente número de despacho.
        Formato: DXXXXX, secuencial sobre los números existentes.
        """
        max_num = 0
        for dispatch in self.all():
            number = str(dispatch.get('dispatchNumber') or '')
            if number.startswith('D'):
                try:
                    max_num = max(max_num, int(number[1:]))
                except ValueError:
                    continue
        return f"D{max_num + 1:05d}"


class StorePaymentRepository(CollectionRepository):
    """Repositorio de abonos de sucursales."""

    COLLECTION = 'storePayments'
    FILE_NAME = 'store_payments.json'

    def find_by_store(self, store_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('storeId', store_id)


class SupplierPaymentRepository(CollectionRepository):
    """Repositorio de pagos a proveedores."""

    COLLECTION = 'supplierPayments'
    FILE_NAME = 'supplier_payments.json'

    def find_by_invoice(self, invoice_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('invoiceId', invoice_id)


class StockAdjustmentRepository(CollectionRepository):
    """Repositorio de ajustes manuales de stock."""

    COLLECTION = 'stockAdjustments'
    FILE_NAME = 'stock_adjustments.json'

    def find_by_product(self, product_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('productId', product_id)
