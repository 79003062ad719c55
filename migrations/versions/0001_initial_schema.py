"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-09-01
"""

import os

from alembic import op
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS organizers (
            id SERIAL PRIMARY KEY,
            email VARCHAR(255) NOT NULL,
            password_hash VARCHAR(255),
            full_name VARCHAR(255),
            is_admin BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS ix_organizers_email_lower ON organizers (lower(email))"
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY,
            smtp_host VARCHAR(255),
            smtp_port INTEGER,
            smtp_user VARCHAR(255),
            smtp_from_default VARCHAR(255),
            smtp_from_name VARCHAR(255),
            smtp_pass_enc TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            id VARCHAR(32) PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            date DATE NOT NULL,
            category VARCHAR(16) NOT NULL,
            participant_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS participants (
            id VARCHAR(32) PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL,
            phone VARCHAR(64) NOT NULL DEFAULT '',
            organization VARCHAR(255) DEFAULT '',
            job_title VARCHAR(255) DEFAULT '',
            event_id VARCHAR(32) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            certificate_status VARCHAR(16) NOT NULL DEFAULT 'Not Sent',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_participants_event_id ON participants (event_id)"
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS certificates (
            id VARCHAR(32) PRIMARY KEY,
            batch_id VARCHAR(32),
            event_id VARCHAR(32) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            participant_id VARCHAR(32) NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
            participant_name VARCHAR(255) NOT NULL DEFAULT '',
            template_id VARCHAR(16) NOT NULL,
            issued_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            web3_hash VARCHAR(66) NOT NULL,
            delivery_method VARCHAR(64) NOT NULL DEFAULT '',
            delivery_status VARCHAR(16) NOT NULL,
            fields JSON NOT NULL,
            design_data_url TEXT
        )
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_certificates_event_id ON certificates (event_id)"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_certificates_participant_id ON certificates (participant_id)"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_certificates_batch_id ON certificates (batch_id)"
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS generated_designs (
            id VARCHAR(32) PRIMARY KEY,
            prompt TEXT NOT NULL,
            data_url TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn = op.get_bind()
    defaults = {
        'id': 1,
        'smtp_host': os.getenv('SMTP_HOST', ''),
        'smtp_port': int(os.getenv('SMTP_PORT') or 0),
        'smtp_user': os.getenv('SMTP_USER', ''),
        'smtp_from_default': os.getenv('SMTP_FROM_DEFAULT', ''),
        'smtp_from_name': os.getenv('SMTP_FROM_NAME', ''),
    }
    conn.execute(
        text(
            """
            INSERT INTO settings (id, smtp_host, smtp_port, smtp_user, smtp_from_default, smtp_from_name)
            VALUES (:id, :smtp_host, :smtp_port, :smtp_user, :smtp_from_default, :smtp_from_name)
            ON CONFLICT (id) DO NOTHING
            """
        ),
        defaults,
    )


def downgrade():
    op.execute("DROP TABLE IF EXISTS generated_designs")
    op.execute("DROP TABLE IF EXISTS certificates")
    op.execute("DROP TABLE IF EXISTS participants")
    op.execute("DROP TABLE IF EXISTS events")
    op.execute("DROP TABLE IF EXISTS settings")
    op.execute("DROP TABLE IF EXISTS organizers")
