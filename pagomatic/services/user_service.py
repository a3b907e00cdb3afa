# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con usuarios.
#
# - Este servicio NO depende del tipo de almacenamiento
# - Solo interactúa con repositorios a través de interfaces claras
# - Toda la lógica de permisos y validaciones está aquí, NO en rutas
#
# REGLA CRÍTICA - ÚLTIMO ADMINISTRADOR:
# Siempre debe existir al menos un usuario con rol ADMIN (es quien puede
# autorizar anulaciones). No se puede eliminar ni degradar al último.
# ==============================================================================

import logging
from typing import Any, Dict, Iterable, List, Optional

from werkzeug.security import generate_password_hash

from pagomatic.models import AuditAction, AuditEntity, User, UserRole, new_id
from pagomatic.repositories.settings_repository import SessionRepository
from pagomatic.repositories.user_repository import UserRepository
from pagomatic.services.audit_service import AuditService
from pagomatic.services.authorization_service import check_password, is_password_hashed
from pagomatic.services.dialog_service import Responder, request_password

logger = logging.getLogger(__name__)


class ProtectedRoleError(Exception):
    """Excepción lanzada cuando se intenta quitar el último administrador."""
    pass


# Usuarios iniciales cuando users.json está vacío
DEFAULT_USERS = (
    {'id': 'u-admin', 'username': 'admin', 'name': 'Super Administrador', 'roles': ['ADMIN'], 'password': '123'},
    {'id': 'u-compras', 'username': 'compras', 'name': 'Jefe de Compras', 'roles': ['COMPRAS']},
    {'id': 'u-logistics', 'username': 'despachos', 'name': 'Encargado de Logística', 'roles': ['DESPACHOS']},
    {'id': 'u-box', 'username': 'cobranza', 'name': 'Cajero de Sucursales', 'roles': ['COBRANZA']},
)

# Secciones del menú → roles con acceso
MENU_PERMISSIONS = {
    'dashboard': frozenset(UserRole),
    'dispatches': frozenset([UserRole.ADMIN, UserRole.DESPACHOS, UserRole.COMPRAS]),
    'stores': frozenset([UserRole.ADMIN, UserRole.COBRANZA]),
    'suppliers': frozenset([UserRole.ADMIN, UserRole.COMPRAS]),
    'inventory': frozenset([UserRole.ADMIN, UserRole.COMPRAS]),
    'reports': frozenset([UserRole.ADMIN, UserRole.AUDITOR]),
    'admin': frozenset([UserRole.ADMIN]),
    'security': frozenset([UserRole.ADMIN]),
}


def can_access(user: Optional[User], section: str) -> bool:
    """Verifica si el usuario tiene algún rol con acceso a la sección."""
    if user is None:
        return False
    allowed = MENU_PERMISSIONS.get(section, frozenset())
    return any(role in allowed for role in user.roles)


def parse_roles(raw_roles: Iterable[Any]) -> List[UserRole]:
    """
    Raises:
        ValueError: Si algún rol no existe
    """
    roles = []
    for raw in raw_roles or []:
        try:
            role = UserRole(str(raw).upper())
        except ValueError:
            raise ValueError(f"Rol inválido: {raw}")
        if role not in roles:
            roles.append(role)
    return roles


class UserService:
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (login/logout) y sesión persistida
    - CRUD de usuarios
    - Protección del último administrador
    """

    def __init__(
        self,
        user_repo: UserRepository,
        session_repo: SessionRepository = None,
        audit_service: AuditService = None
    ):
        """
        Inicializa el servicio de usuarios.

        Args:
            user_repo: Repositorio de usuarios
            session_repo: Ranura de sesión persistida (opcional)
            audit_service: Servicio de auditoría (opcional)
        """
        self.user_repo = user_repo
        self.session_repo = session_repo
        self.audit_service = audit_service

    # =========================================================================
    # DATOS INICIALES
    # =========================================================================

    def ensure_default_users(self) -> int:
        """
        Crea los usuarios iniciales si no hay ninguno.

        Returns:
            Cantidad de usuarios creados
        """
        if self.user_repo.count() > 0:
            return 0
        records = []
        for data in DEFAULT_USERS:
            record = dict(data)
            if record.get('password'):
                record['password'] = generate_password_hash(record['password'])
            records.append(record)
        created = self.user_repo.bulk_add(records)
        logger.info("[USUARIOS] %d usuarios iniciales creados", created)
        return created

    def migrate_passwords_to_hash(self) -> Dict[str, Any]:
        """
        Migra todas las contraseñas en texto plano a hash seguro.

        Returns:
            Dict con información de migración
        """
        migrated_count = 0
        for data in self.user_repo.all():
            current_pwd = data.get('password', '')
            if current_pwd and not is_password_hashed(current_pwd):
                self.user_repo.update(data['id'], {'password': generate_password_hash(current_pwd)})
                migrated_count += 1

        if migrated_count > 0:
            logger.info("[SEGURIDAD] %d contraseñas migradas a hash", migrated_count)
            if self.audit_service:
                self.audit_service.log(
                    AuditAction.UPDATE,
                    AuditEntity.SECURITY,
                    'passwords',
                    f'Migración de contraseñas: {migrated_count} contraseñas actualizadas a hash seguro'
                )

        return {'ok': True, 'migrated_count': migrated_count}

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def login(self, username: str, responder: Optional[Responder] = None) -> Dict[str, Any]:
        """
        Inicia sesión. Si el usuario tiene clave, se pide por el canal de diálogos.

        Args:
            username: Nombre de acceso
            responder: Canal de diálogos para la clave

        Returns:
            {'ok': True, 'user': User} o
            {'ok': False, 'reason': 'not_found'|'cancelled'|'unauthorized', 'error': str}
        """
        data = self.user_repo.get_by_username(username)
        if not data:
            return {'ok': False, 'reason': 'not_found', 'error': 'Usuario no encontrado'}

        user = User.from_dict(data)
        if user.password:
            password = request_password(responder, 'Iniciar sesión', f"Clave de {user.username}")
            if password is None:
                return {'ok': False, 'reason': 'cancelled', 'error': 'Inicio de sesión cancelado'}
            if not check_password(user.password, password):
                logger.warning("[AUTH] Clave incorrecta para '%s'", user.username)
                return {'ok': False, 'reason': 'unauthorized', 'error': 'Clave incorrecta'}

        if self.session_repo is not None:
            self.session_repo.save_session(user.to_session_dict())
        if self.audit_service:
            self.audit_service.log_user_login(user)
        return {'ok': True, 'user': user}

    def logout(self, user: Optional[User] = None) -> None:
        if self.session_repo is not None:
            self.session_repo.clear_session()
        if user is not None and self.audit_service:
            self.audit_service.log_user_logout(user)

    def restore_session(self) -> Optional[User]:
        """
        Recupera el usuario de la sesión persistida.
        Un campo legacy `role` se convierte a `roles` y se reescribe.
        """
        if self.session_repo is None:
            return None
        data = self.session_repo.load_session()
        if not data:
            return None
        user = User.from_dict(data)
        if 'roles' not in data:
            self.session_repo.save_session(user.to_session_dict())
        return user

    def verify_password(self, username: str, password: str) -> bool:
        data = self.user_repo.get_by_username(username)
        if not data:
            return False
        return check_password(data.get('password', ''), password)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[User]:
        data = self.user_repo.get(user_id)
        return User.from_dict(data) if data else None

    def get_all_users(self) -> List[User]:
        return [User.from_dict(u) for u in self.user_repo.all()]

    def count_admins(self) -> int:
        return len(self.user_repo.find_by_role(UserRole.ADMIN.value))

    def _ensure_admin_remains(self, user: User, new_roles: Optional[List[UserRole]] = None) -> None:
        """
        Raises:
            ProtectedRoleError: Si la operación deja al sistema sin ADMIN
        """
        if not user.is_admin():
            return
        if new_roles is not None and UserRole.ADMIN in new_roles:
            return
        if self.count_admins() <= 1:
            raise ProtectedRoleError('Debe existir al menos un administrador')

    # =========================================================================
    # CRUD
    # =========================================================================

    def add_user(
        self,
        username: str,
        name: str,
        roles: Iterable[Any],
        password: str = '',
        actor: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Crea un nuevo usuario.

        Returns:
            {'ok': True, 'id': str} o {'ok': False, 'reason': 'invalid', 'error': str}
        """
        username = (username or '').strip().lower()
        if not username:
            return {'ok': False, 'reason': 'invalid', 'error': 'Nombre de usuario requerido'}
        if self.user_repo.username_exists(username):
            return {'ok': False, 'reason': 'invalid', 'error': 'El usuario ya existe'}
        try:
            parsed_roles = parse_roles(roles)
        except ValueError as e:
            return {'ok': False, 'reason': 'invalid', 'error': str(e)}
        if not parsed_roles:
            return {'ok': False, 'reason': 'invalid', 'error': 'Debe asignar al menos un rol'}

        user = User(
            id=new_id('u'),
            username=username,
            name=(name or username).strip(),
            roles=parsed_roles,
            password=generate_password_hash(password) if password else '',
        )
        self.user_repo.add(user.to_dict())

        if self.audit_service:
            roles_text = ', '.join(r.value for r in parsed_roles)
            self.audit_service.log(AuditAction.CREATE, AuditEntity.USER, user.id,
                                   f"Usuario creado: {username} ({roles_text})", actor)
        return {'ok': True, 'id': user.id}

    def update_user(self, user_id: str, changes: Dict[str, Any], actor: Optional[User] = None) -> Dict[str, Any]:
        """
        Actualiza nombre, roles o clave de un usuario.

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'invalid'|'protected', 'error': str}
        """
        user = self.get_user(user_id)
        if user is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Usuario no encontrado'}

        fields: Dict[str, Any] = {}
        if 'name' in changes:
            fields['name'] = str(changes['name'] or user.username).strip()
        if 'roles' in changes:
            try:
                new_roles = parse_roles(changes['roles'])
            except ValueError as e:
                return {'ok': False, 'reason': 'invalid', 'error': str(e)}
            if not new_roles:
                return {'ok': False, 'reason': 'invalid', 'error': 'Debe asignar al menos un rol'}
            try:
                self._ensure_admin_remains(user, new_roles)
            except ProtectedRoleError as e:
                return {'ok': False, 'reason': 'protected', 'error': str(e)}
            fields['roles'] = [r.value for r in new_roles]
            fields.pop('role', None)
        if 'password' in changes:
            password = changes['password'] or ''
            fields['password'] = generate_password_hash(password) if password else ''

        if not fields:
            return {'ok': True}

        self.user_repo.update(user_id, fields)
        if self.audit_service:
            self.audit_service.log(AuditAction.UPDATE, AuditEntity.USER, user_id,
                                   f"Usuario actualizado: {user.username} ({', '.join(sorted(fields))})", actor)
        return {'ok': True}

    def delete_user(self, user_id: str, actor: Optional[User] = None) -> Dict[str, Any]:
        """
        Elimina un usuario.

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'protected', 'error': str}
        """
        user = self.get_user(user_id)
        if user is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Usuario no encontrado'}
        if actor is not None and actor.id == user_id:
            return {'ok': False, 'reason': 'protected', 'error': 'No puedes eliminar tu propia cuenta'}
        try:
            self._ensure_admin_remains(user)
        except ProtectedRoleError as e:
            return {'ok': False, 'reason': 'protected', 'error': str(e)}

        self.user_repo.delete(user_id)
        if self.audit_service:
            self.audit_service.log(AuditAction.DELETE, AuditEntity.USER, user_id,
                                   f"Usuario eliminado: {user.username}", actor)
        return {'ok': True}
