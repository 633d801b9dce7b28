"""initial academic records tables

Revision ID: 3a7e1c2d9b40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7e1c2d9b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'faculties',
        sa.Column('faculty_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'departments',
        sa.Column('department_id', sa.Integer(), primary_key=True),
        sa.Column('faculty_id_fk', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('pass_mark', sa.Integer(), nullable=False, server_default=sa.text('40')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['faculty_id_fk'], ['faculties.faculty_id']),
        sa.UniqueConstraint('code'),
        sa.CheckConstraint('pass_mark >= 0 AND pass_mark <= 100', name='ck_department_pass_mark'),
    )

    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=128), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('first_name', sa.String(length=64), nullable=True),
        sa.Column('last_name', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='HOD'),
        sa.Column('department_id_fk', sa.Integer(), nullable=True),
        sa.Column('faculty_id_fk', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['department_id_fk'], ['departments.department_id']),
        sa.ForeignKeyConstraint(['faculty_id_fk'], ['faculties.faculty_id']),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'students',
        sa.Column('student_id', sa.Integer(), primary_key=True),
        sa.Column('matric_number', sa.String(length=32), nullable=False),
        sa.Column('department_id_fk', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=64), nullable=False),
        sa.Column('last_name', sa.String(length=64), nullable=False),
        sa.Column('middle_name', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=128), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('current_level', sa.String(length=16), nullable=False),
        sa.Column('admission_year', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['department_id_fk'], ['departments.department_id']),
        sa.UniqueConstraint('matric_number'),
    )
    op.create_index('ix_students_department_level', 'students', ['department_id_fk', 'current_level'])

    op.create_table(
        'courses',
        sa.Column('course_id', sa.Integer(), primary_key=True),
        sa.Column('department_id_fk', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('credit_unit', sa.Integer(), nullable=False),
        sa.Column('level', sa.String(length=16), nullable=False),
        sa.Column('semester', sa.String(length=8), nullable=False),
        sa.Column('is_elective', sa.Boolean(), nullable=True, server_default=sa.text('0')),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['department_id_fk'], ['departments.department_id']),
        sa.UniqueConstraint('code', 'department_id_fk', name='uq_course_code_department'),
        sa.CheckConstraint('credit_unit > 0', name='ck_course_credit_unit'),
    )

    op.create_table(
        'results',
        sa.Column('result_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('course_id_fk', sa.Integer(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('grade', sa.String(length=2), nullable=False),
        sa.Column('grade_point', sa.Integer(), nullable=False),
        sa.Column('quality_points', sa.Float(), nullable=False),
        sa.Column('is_carry_over', sa.Boolean(), nullable=True, server_default=sa.text('0')),
        sa.Column('level', sa.String(length=16), nullable=False),
        sa.Column('semester', sa.String(length=8), nullable=False),
        sa.Column('academic_year', sa.String(length=9), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id']),
        sa.ForeignKeyConstraint(['course_id_fk'], ['courses.course_id']),
        sa.UniqueConstraint('student_id_fk', 'course_id_fk', 'academic_year', name='uq_result_student_course_year'),
    )
    op.create_index('ix_results_semester_key', 'results', ['student_id_fk', 'level', 'semester', 'academic_year'])

    op.create_table(
        'semester_gpas',
        sa.Column('gpa_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('level', sa.String(length=16), nullable=False),
        sa.Column('semester', sa.String(length=8), nullable=False),
        sa.Column('academic_year', sa.String(length=9), nullable=False),
        sa.Column('gpa', sa.Float(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_units', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_points', sa.Float(), nullable=False, server_default=sa.text('0')),
        sa.Column('cumulative_gpa', sa.Float(), nullable=False, server_default=sa.text('0')),
        sa.Column('cumulative_units', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id']),
        sa.UniqueConstraint('student_id_fk', 'level', 'semester', 'academic_year', name='uq_semester_gpa_key'),
    )

    op.create_table(
        'import_logs',
        sa.Column('log_id', sa.Integer(), primary_key=True),
        sa.Column('user_id_fk', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=True, server_default=sa.text('0')),
        sa.Column('total_rows', sa.Integer(), nullable=True),
        sa.Column('created_count', sa.Integer(), nullable=True),
        sa.Column('updated_count', sa.Integer(), nullable=True),
        sa.Column('skipped_count', sa.Integer(), nullable=True),
        sa.Column('errors_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id_fk'], ['users.user_id']),
    )


def downgrade():
    op.drop_table('import_logs')
    op.drop_table('semester_gpas')
    op.drop_index('ix_results_semester_key', table_name='results')
    op.drop_table('results')
    op.drop_table('courses')
    op.drop_index('ix_students_department_level', table_name='students')
    op.drop_table('students')
    op.drop_table('users')
    op.drop_table('departments')
    op.drop_table('faculties')
