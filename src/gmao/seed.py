# gmao/seed.py
import time
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from .wsgi import app
from .extensions import db
from .permissions import ensure_admin_role, ensure_admin_user, ensure_catalog


def wait_for_db(max_tries=30, sleep=2):
    for i in range(max_tries):
        try:
            with app.app_context():
                # força uma conexão simples
                db.session.execute(text("SELECT 1"))
                return
        except OperationalError as e:
            print(f"[seed] aguardando DB... ({i+1}/{max_tries}) {e}")
            time.sleep(sleep)
    raise RuntimeError("[seed] DB não respondeu a tempo")


def ensure_seed():
    with app.app_context():
        db.create_all()

        # 1) catálogo de permissões (idempotente: get-or-create por module/action)
        perms = ensure_catalog()
        print(f"[seed] catálogo de permissões: {len(perms)} entradas")

        # 2) papel Admin com todas as permissões
        role, created = ensure_admin_role()
        print(f"[seed] papel {role.nom} {'criado' if created else 'sincronizado'}")

        # 3) usuário administrador
        nome = app.config["SEED_ADMIN_NAME"]
        user, created = ensure_admin_user(nome, app.config["SEED_ADMIN_PASSWORD"])
        if created:
            print(f"[seed] usuário {nome} criado.")
        else:
            print(f"[seed] usuário {nome} já existe, sem alterações.")
        db.session.commit()


if __name__ == "__main__":
    print("[seed] iniciando...")
    wait_for_db()
    ensure_seed()
    print("[seed] ok.")
