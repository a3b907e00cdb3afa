# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a users.json
# Los usuarios se almacenan como diccionario: {id: {username, name, roles, password}}
# ==============================================================================

from typing import Any, Dict, List, Optional

from pagomatic.repositories.base import CollectionRepository


class UserRepository(CollectionRepository):
    """
    Repositorio para gestión de usuarios.

    Formato de datos en users.json:
    {
        "u-admin": {
            "id": "u-admin",
            "username": "admin",
            "name": "Administrador",
            "roles": ["ADMIN"],
            "password": "scrypt:..."
        }
    }

    Nota: registros antiguos pueden traer "role" (un solo rol) en lugar
    de "roles"; la conversión la hace el modelo User.
    """

    COLLECTION = 'users'
    FILE_NAME = 'users.json'

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene un usuario por su nombre de acceso.

        Args:
            username: Nombre de acceso (sin distinguir mayúsculas)

        Returns:
            Datos del usuario o None
        """
        wanted = (username or '').strip().lower()
        for user in self.all():
            if (user.get('username') or '').lower() == wanted:
                return user
        return None

    def username_exists(self, username: str) -> bool:
        return self.get_by_username(username) is not None

    def find_by_role(self, role: str) -> List[Dict[str, Any]]:
        """Usuarios que tienen el rol indicado (formato nuevo o legacy)."""
        return self.filter(
            lambda u: role in (u.get('roles') or []) or u.get('role') == role
        )
